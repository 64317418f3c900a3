"""
Tutor chat sessions.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from toeic_api.db.models.chat import ChatMessage, ChatSession
from toeic_api.llm.provider import LLMProvider
from toeic_api.services.ai_service import chat_reply

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50


def get_session(db: Session, user_id: int, session_id: int) -> Optional[ChatSession]:
    return db.query(ChatSession).filter(
        ChatSession.id == session_id,
        ChatSession.user_id == user_id,
    ).first()


def list_sessions(db: Session, user_id: int) -> List[Dict]:
    sessions = db.query(ChatSession).filter(
        ChatSession.user_id == user_id
    ).order_by(ChatSession.updated_at.desc(), ChatSession.id.desc()).all()
    return [serialize_session(session) for session in sessions]


def serialize_session(session: ChatSession, include_messages: bool = False) -> Dict:
    data = {
        "id": session.id,
        "title": session.title,
        "createdAt": session.created_at.isoformat() if session.created_at else None,
        "updatedAt": session.updated_at.isoformat() if session.updated_at else None,
    }
    if include_messages:
        data["messages"] = [
            {
                "id": message.id,
                "role": message.role,
                "content": message.content,
                "createdAt": message.created_at.isoformat() if message.created_at else None,
            }
            for message in session.messages
        ]
    return data


def send_message(
    db: Session,
    user_id: int,
    provider: Optional[LLMProvider],
    message: str,
    session_id: Optional[int] = None,
    question_context: Optional[Dict] = None,
) -> Dict:
    """
    Continue (or start) a session and store both turns.

    The provider is called before anything is written, so a failed call
    leaves no orphan user message.

    Raises:
        LookupError: session_id does not belong to the user
        AIProviderError: provider failed
    """
    if session_id is not None:
        session = get_session(db, user_id, session_id)
        if session is None:
            raise LookupError("Chat session not found")
        history = [{"role": m.role, "content": m.content} for m in session.messages]
    else:
        session = None
        history = []

    reply = chat_reply(provider, history, message, question_context)

    if session is None:
        session = ChatSession(user_id=user_id, title=message[:TITLE_MAX_LENGTH])
        db.add(session)
        db.flush()

    db.add(ChatMessage(session_id=session.id, role="user", content=message))
    db.add(ChatMessage(session_id=session.id, role="assistant", content=reply))
    session.updated_at = datetime.utcnow()
    db.commit()

    logger.info(f"Chat message stored: user_id={user_id}, session_id={session.id}")
    return {"sessionId": session.id, "reply": reply}


def delete_session(db: Session, session: ChatSession) -> None:
    db.delete(session)
    db.commit()
