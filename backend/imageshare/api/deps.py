from fastapi import BackgroundTasks, Depends, Request

from imageshare.core.mailer import Mailer, Notification
from imageshare.core.uploads import LocalFileStore
from imageshare.services.notifications import Notify, deliver


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_file_store(request: Request) -> LocalFileStore:
    return request.app.state.file_store


def get_notifier(background_tasks: BackgroundTasks, mailer: Mailer = Depends(get_mailer)) -> Notify:
    """Queue notifications to be sent after the response is returned."""

    def _notify(notification: Notification) -> None:
        background_tasks.add_task(deliver, mailer, [notification])

    return _notify
