"""
Event Log：記錄所有重要事件

事件只在 transaction 內 add，跟著業務操作一起 commit 或 rollback，
因此被拒絕的呼叫不會留下事件。
"""
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from models import EventLog


def record_event(db: Session, game_id: Optional[int], event_type: str, **data: Any) -> EventLog:
    event = EventLog(game_id=game_id, event_type=event_type, data=data)
    db.add(event)
    return event


def get_events(db: Session, game_id: int, event_type: Optional[str] = None) -> List[EventLog]:
    """依時間順序取得某場遊戲的事件（可依 event_type 篩選）"""
    query = db.query(EventLog).filter(EventLog.game_id == game_id)
    if event_type:
        query = query.filter(EventLog.event_type == event_type)
    return query.order_by(EventLog.id).all()
