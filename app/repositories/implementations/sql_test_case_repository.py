from typing import List, Optional
from sqlalchemy.orm import Session
from app.core.database import commit_or_rollback
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.models.database import TestCaseModel
from app.models.schemas import TestCase, TestCaseCreate, TestCaseStatus


class SQLTestCaseRepository(ITestCaseRepository):
    """SQLAlchemy implementation of test case repository"""

    def __init__(self, db: Session):
        self.db = db

    async def create(self, project_id: str, test_case: TestCaseCreate, generation_id: Optional[str] = None) -> TestCase:
        """Persist a test case derived from a generated scenario"""
        db_test_case = TestCaseModel(
            project_id=project_id,
            generation_id=generation_id,
            status=TestCaseStatus.DRAFT,
            **test_case.model_dump(),
        )
        self.db.add(db_test_case)
        commit_or_rollback(self.db)
        self.db.refresh(db_test_case)
        return TestCase.model_validate(db_test_case)

    async def get_by_id(self, test_case_id: int) -> Optional[TestCase]:
        """Get test case by ID"""
        db_test_case = self.db.query(TestCaseModel).filter(TestCaseModel.id == test_case_id).first()
        if db_test_case:
            return TestCase.model_validate(db_test_case)
        return None

    async def get_by_project(self, project_id: str, skip: int = 0, limit: int = 100) -> List[TestCase]:
        """Get a project's test cases with pagination"""
        db_test_cases = (
            self.db.query(TestCaseModel)
            .filter(TestCaseModel.project_id == project_id)
            .order_by(TestCaseModel.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return [TestCase.model_validate(test_case) for test_case in db_test_cases]
