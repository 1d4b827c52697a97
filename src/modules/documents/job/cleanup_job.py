from apscheduler.schedulers.background import BackgroundScheduler
from modules.documents.services.cleanup import remove_superseded_files
from modules.documents.services.storage import get_storage
from database import SessionLocal

def start_cleanup_job(interval_minutes: int = 60) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()

    def job():
        with SessionLocal() as session:
            remove_superseded_files(session, get_storage())

    scheduler.add_job(job, 'interval', minutes=interval_minutes)
    scheduler.start()
    return scheduler
