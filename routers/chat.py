from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from db.database import get_db
from interfaces.chatModels import ChatHistoryResponse, ChatMessageResponse, ChatRequest
from interfaces.productModels import MessageResponse
from logger_manager import log_info
from routers.dependencies import get_completion_client
from services.chat_service import clear_chat_history, get_chat_history, send_chat_message
from services.llm_client import CompletionClient
from utils.analysis_utils import as_utc

router = APIRouter()


@router.get("/messages", response_model=ChatHistoryResponse)
def read_messages(db: Session = Depends(get_db)):
    """Conversation in chronological order, ending with a placeholder while a reply is pending."""
    log_info("Read chat messages endpoint called")
    return get_chat_history(db)


@router.post("/messages", response_model=ChatMessageResponse)
async def post_message(
    chat_request: ChatRequest,
    db: Session = Depends(get_db),
    client: CompletionClient = Depends(get_completion_client),
):
    """Send a message and return the assistant's reply."""
    log_info("Post chat message endpoint called")
    try:
        reply = await send_chat_message(db, client, chat_request.content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    response = ChatMessageResponse.model_validate(reply)
    response.timestamp = as_utc(response.timestamp)
    return response


@router.delete("/messages", response_model=MessageResponse)
def clear_messages(db: Session = Depends(get_db)):
    log_info("Clear chat messages endpoint called")
    deleted = clear_chat_history(db)
    return MessageResponse(message="Chat history cleared", details={"deleted": deleted})
