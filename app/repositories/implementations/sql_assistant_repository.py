from typing import List, Optional
from sqlalchemy.orm import Session
from app.core.database import commit_or_rollback
from app.models.database import AIAssistantModel
from app.models.schemas import AIAssistant, AssistantStatus
from app.repositories.interfaces.assistant_repository import IAssistantRepository


class SQLAssistantRepository(IAssistantRepository):
    """SQLAlchemy implementation of the assistant record store"""

    def __init__(self, db: Session):
        self.db = db

    async def create(self, project_id: str, assistant_id: str, instructions: str, tools: str, model: str) -> AIAssistant:
        db_assistant = AIAssistantModel(
            project_id=project_id,
            assistant_id=assistant_id,
            instructions=instructions,
            tools=tools,
            model=model,
            status=AssistantStatus.ACTIVE,
        )
        self.db.add(db_assistant)
        commit_or_rollback(self.db)
        self.db.refresh(db_assistant)
        return AIAssistant.model_validate(db_assistant)

    async def find_by_project(self, project_id: str) -> Optional[AIAssistant]:
        db_assistant = self.db.query(AIAssistantModel).filter(AIAssistantModel.project_id == project_id).first()
        if db_assistant:
            return AIAssistant.model_validate(db_assistant)
        return None

    async def get_all(self) -> List[AIAssistant]:
        return [AIAssistant.model_validate(a) for a in self.db.query(AIAssistantModel).all()]

    async def delete(self, record_id: int) -> bool:
        db_assistant = self.db.query(AIAssistantModel).filter(AIAssistantModel.id == record_id).first()
        if not db_assistant:
            return False

        self.db.delete(db_assistant)
        commit_or_rollback(self.db)
        return True
