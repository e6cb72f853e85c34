"""Notification commands for the nestblue-sync CLI."""

from cyclopts import App

from nestblue_sync.models import Notification

notifications_app = App(name="notifications", help="Read and watch notifications")


def _format(notification: Notification) -> str:
    marker = " " if notification.read else "●"
    return f"{marker} {notification.id}: {notification.title} - {notification.message}"


def _mark_read(sync, notification_ids) -> int:
    """Flag mirrored notifications read and mark the cached list stale."""
    marked = sum(1 for notification_id in notification_ids if sync.store.update(notification_id, {"read": True}))
    sync.cache.set_data(sync.query_key, sync.store.items())
    sync.cache.invalidate(sync.query_key)
    return marked


@notifications_app.command(name="list")
def list_notifications(unread: bool = False, refresh: bool = False) -> None:
    """List notifications."""
    from nestblue_sync.cli import get_workspace

    with get_workspace() as workspace:
        sync = workspace["notifications"]
        result = sync.load(refresh=refresh)
        if result.error is not None:
            print(f"Could not refresh notifications: {result.error}")
        notifications = [n for n in sync.data if not (unread and n.read)]

    if not notifications:
        print("No notifications")
        return
    for notification in notifications:
        print(_format(notification))


@notifications_app.command
def read(*notification_ids: str) -> None:
    """Mark notifications as read."""
    from nestblue_sync.cli import get_workspace

    with get_workspace() as workspace:
        for notification_id in notification_ids:
            workspace.backend.mark_notification_read(notification_id)
        _mark_read(workspace["notifications"], notification_ids)
    print(f"Marked {len(notification_ids)} notification(s) read")


@notifications_app.command(name="read-all")
def read_all() -> None:
    """Mark every notification as read."""
    from nestblue_sync.cli import get_workspace

    with get_workspace() as workspace:
        sync = workspace["notifications"]
        workspace.backend.mark_all_notifications_read()
        _mark_read(sync, [notification.id for notification in sync.store.items()])
    print("Marked all notifications read")


@notifications_app.command
def unread() -> None:
    """Show the unread notification count."""
    from nestblue_sync.cli import get_backend

    with get_backend() as backend:
        count = backend.unread_notification_count()
    print(f"Unread notifications: {count}")


@notifications_app.command
def watch() -> None:
    """Print notifications as they arrive until interrupted."""
    from nestblue_sync.cli import get_workspace
    from nestblue_sync.config import get_config, resolve_settings
    from nestblue_sync.notifications import NotificationListener

    settings = resolve_settings(get_config())
    if not settings.token:
        raise ValueError("No auth token configured. Set it using:\n  nb config set auth.token <token>")

    with get_workspace() as workspace:
        listener = NotificationListener(ws_url=settings.ws_url, workspace=workspace)
        listener.on("connected", lambda _: print("Connected, waiting for notifications..."))
        listener.on("notification", lambda n: print(_format(n) if isinstance(n, Notification) else n))
        listener.on(
            "unread-count", lambda data: print(f"Unread: {data.get('count') if isinstance(data, dict) else data}")
        )
        listener.on("error", lambda data: print(f"Connection error: {data.get('error')}"))
        listener.connect(settings.token)
        if not listener.is_connected():
            return
        try:
            listener.wait()
        except KeyboardInterrupt:
            pass
        finally:
            listener.disconnect()
