# Run from project root: uvicorn app.main:app --reload

import logging

from fastapi import FastAPI

from app.api.routes import router
from app.services.dispatcher import WorkflowDispatcher
from app.store.conversation_store import ConversationStore

logging.basicConfig(level=logging.INFO)


def create_app(
    store: ConversationStore | None = None,
    dispatcher: WorkflowDispatcher | None = None,
) -> FastAPI:
    """Build the app with one store and one dispatcher shared by every request."""
    application = FastAPI(title="Workflow Chat Gateway")
    application.state.store = store or ConversationStore.from_config()
    application.state.dispatcher = dispatcher or WorkflowDispatcher.from_config()
    application.include_router(router)
    return application


app = create_app()
