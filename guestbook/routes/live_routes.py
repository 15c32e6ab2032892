from fastapi import APIRouter, Depends, WebSocket

from guestbook.services.notification_hub import NotificationHub, get_notification_hub

router = APIRouter(tags=['live'])


@router.websocket('/ws')
async def notifications_socket(
    websocket: WebSocket,
    hub: NotificationHub = Depends(get_notification_hub),
):
    await hub.accept(websocket)
