"""
Operational endpoints: manual tracking poll and scheduler status
"""
from fastapi import APIRouter, HTTPException

from shiprecon.scheduler import get_scheduled_jobs, pause_job, resume_job, run_tracking_poll
from shiprecon.utils.logger import log

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/poll-tracking")
async def poll_tracking_now():
    """Run the UPS delivery status poll immediately"""
    try:
        return await run_tracking_poll()
    except Exception as e:
        log.error(f"Manual tracking poll failed: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/jobs")
async def list_jobs():
    """List scheduled jobs"""
    return {"jobs": get_scheduled_jobs()}


@router.post("/jobs/{job_id}/pause")
async def pause_scheduled_job(job_id: str):
    """Pause a scheduled job"""
    return {"job_id": job_id, "success": pause_job(job_id)}


@router.post("/jobs/{job_id}/resume")
async def resume_scheduled_job(job_id: str):
    """Resume a paused job"""
    return {"job_id": job_id, "success": resume_job(job_id)}
