from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.models.notification import Notification
from clinic_backend.routes.common import database_unavailable, ensure_database_ready, get_db

router = APIRouter(tags=['notifications'])


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    text: str
    timestamp: int
    read: bool

    class Config:
        from_attributes = True


@router.get('', response_model=list[NotificationResponse])
def list_notifications(
    user_id: int = Query(...),
    unread_only: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        return query.order_by(Notification.timestamp.desc(), Notification.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/{notification_id}/read', response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        notification = db.get(Notification, notification_id)
        if notification is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Notification not found.',
            )
        if notification.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the recipient can mark this notification as read.',
            )

        notification.read = True
        db.commit()
        db.refresh(notification)

        return notification
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
