"""
Scheduler for the daily UPS delivery status poll

Uses APScheduler to run the tracking sweep once a day at a fixed local time.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from zoneinfo import ZoneInfo
import asyncio
import time

from shiprecon.dependencies import get_ups_connector
from shiprecon.models.base import SessionLocal
from shiprecon.services.tracking_poller import poll_all_undelivered
from shiprecon.config import get_settings
from shiprecon.utils.logger import log

settings = get_settings()
scheduler = AsyncIOScheduler()

TRACKING_POLL_JOB_ID = "ups_tracking_poll"


async def run_tracking_poll() -> dict:
    """Run one tracking sweep with its own session. Errors propagate."""
    db = SessionLocal()
    try:
        return await poll_all_undelivered(db, get_ups_connector())
    finally:
        db.close()


async def poll_tracking():
    """Daily UPS tracking poll (scheduled job body)"""
    start = time.time()
    try:
        log.info("Starting daily UPS tracking poll...")
        result = await run_tracking_poll()
        log.info(f"UPS tracking poll completed in {time.time() - start:.1f}s: {result}")
    except Exception as e:
        log.error(f"UPS tracking poll failed: {str(e)}")


def setup_scheduler():
    """
    Configure scheduled jobs.

    - UPS tracking poll: daily at tracking_poll_hour:tracking_poll_minute
      in tracking_poll_timezone (default 08:00 America/New_York)
    """
    scheduler.add_job(
        poll_tracking,
        trigger=CronTrigger(
            hour=settings.tracking_poll_hour,
            minute=settings.tracking_poll_minute,
            timezone=ZoneInfo(settings.tracking_poll_timezone),
        ),
        id=TRACKING_POLL_JOB_ID,
        name='UPS Delivery Status Poll',
        replace_existing=True,
        max_instances=1
    )
    log.info(
        f"UPS tracking poller scheduled: daily at "
        f"{settings.tracking_poll_hour:02d}:{settings.tracking_poll_minute:02d} {settings.tracking_poll_timezone}"
    )


def start_scheduler():
    """Start the scheduler (requires a running event loop)"""
    setup_scheduler()
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        log.info("Scheduler stopped")


def run_poll_now() -> dict:
    """
    Manually run the tracking poll outside the schedule

    Returns:
        Dict with success flag and the poll counts or error
    """
    try:
        log.info("Manually triggering UPS tracking poll...")
        result = asyncio.run(run_tracking_poll())
        return {'success': True, 'result': result}
    except Exception as e:
        log.error(f"Error running UPS tracking poll: {str(e)}")
        return {'success': False, 'error': str(e)}


def get_scheduled_jobs() -> list:
    """
    Get list of all scheduled jobs

    Returns:
        List of job info dicts
    """
    jobs = []

    for job in scheduler.get_jobs():
        # Not set until the scheduler has started
        next_run = getattr(job, 'next_run_time', None)

        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': next_run.isoformat() if next_run else None,
            'trigger': str(job.trigger)
        })

    return jobs


def pause_job(job_id: str) -> bool:
    """Pause a scheduled job; True if successful"""
    try:
        scheduler.pause_job(job_id)
        log.info(f"Paused job: {job_id}")
        return True
    except Exception as e:
        log.error(f"Error pausing job {job_id}: {str(e)}")
        return False


def resume_job(job_id: str) -> bool:
    """Resume a paused job; True if successful"""
    try:
        scheduler.resume_job(job_id)
        log.info(f"Resumed job: {job_id}")
        return True
    except Exception as e:
        log.error(f"Error resuming job {job_id}: {str(e)}")
        return False


async def _serve_forever():
    start_scheduler()
    try:
        await asyncio.Event().wait()
    finally:
        stop_scheduler()


# CLI for manual polls

if __name__ == "__main__":
    import sys

    if len(sys.argv) < 2:
        print("Usage: python -m shiprecon.scheduler <command>")
        print("\nCommands:")
        print("  start   Start the scheduler")
        print("  poll    Run the UPS tracking poll now")
        print("  list    List all scheduled jobs")
        sys.exit(1)

    command = sys.argv[1]

    if command == "start":
        print("Starting scheduler...")
        try:
            asyncio.run(_serve_forever())
        except (KeyboardInterrupt, SystemExit):
            print("\nShutting down scheduler...")

    elif command == "poll":
        result = run_poll_now()

        if result['success']:
            counts = result['result']
            print(
                f"✓ Polled {counts['polled']}: {counts['updated']} updated, "
                f"{counts['delivered']} delivered, {counts['errors']} errors"
            )
        else:
            print(f"✗ Error: {result['error']}")
            sys.exit(1)

    elif command == "list":
        print("\nScheduled Jobs:")
        print("-" * 80)

        setup_scheduler()
        jobs = get_scheduled_jobs()

        if not jobs:
            print("No jobs scheduled")
        else:
            for job in jobs:
                print(f"\nID:       {job['id']}")
                print(f"Name:     {job['name']}")
                print(f"Next Run: {job['next_run']}")
                print(f"Trigger:  {job['trigger']}")

    else:
        print(f"Unknown command: {command}")
        sys.exit(1)
