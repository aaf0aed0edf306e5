import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from app.api.ai.orchestrator import CombinedAnalysis
from app.api.ai.read_through import ReadThroughService
from app.api.schemas import AnalyzeRequest, IdeaCreate, IdeaOut, IdeaUpdate
from app.database import crud
from app.database.database import SessionLocal

logger = logging.getLogger(__name__)

router = APIRouter()


def get_db():
    """Dependency that provides a SQLAlchemy database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_read_through(request: Request) -> ReadThroughService:
    """The read-through service built at startup (see app.main)."""
    return request.app.state.read_through


@router.post(
    "/ai-agents/analyze",
    response_model=CombinedAnalysis,
    response_model_by_alias=True,
    tags=["Analysis"],
    summary="Analyse a stored business idea",
)
def analyze(
    request: AnalyzeRequest,
    service: ReadThroughService = Depends(get_read_through),
) -> CombinedAnalysis:
    """
    Returns the combined analysis for ``opportunityId``. A stored report is
    served when one covers the requested agents; otherwise the agents run,
    and the static sample is returned if that fails.

    - **opportunityId**: id of the business idea.
    - **agents**: (Optional) subset of agent ids to run.
    """
    try:
        return service.get_analysis(request.opportunity_id, request.agents)
    except ValueError as e:
        logger.warning("Rejected analysis request for %s: %s", request.opportunity_id, e)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.get("/ideas", response_model=List[IdeaOut], tags=["Ideas"], summary="List business ideas")
def list_ideas(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> List[IdeaOut]:
    return crud.list_ideas(db, limit=limit, offset=offset)


@router.post(
    "/ideas",
    response_model=IdeaOut,
    status_code=status.HTTP_201_CREATED,
    tags=["Ideas"],
    summary="Create a business idea",
)
def create_idea(payload: IdeaCreate, db: Session = Depends(get_db)) -> IdeaOut:
    idea = crud.create_idea(db, payload.model_dump())
    logger.info("Created business idea %s (%s)", idea.id, idea.title)
    return idea


@router.get("/ideas/{idea_id}", response_model=IdeaOut, tags=["Ideas"], summary="Get a business idea")
def get_idea(idea_id: int, db: Session = Depends(get_db)) -> IdeaOut:
    idea = crud.get_idea(db, idea_id)
    if not idea:
        logger.warning("Business idea with id %s not found", idea_id)
        raise HTTPException(status_code=404, detail="Idea not found")
    return idea


@router.put("/ideas/{idea_id}", response_model=IdeaOut, tags=["Ideas"], summary="Update a business idea")
def update_idea(idea_id: int, payload: IdeaUpdate, db: Session = Depends(get_db)) -> IdeaOut:
    """Only the fields present in the body are changed."""
    idea = crud.update_idea(db, idea_id, payload.model_dump(exclude_unset=True))
    if not idea:
        logger.warning("Business idea with id %s not found", idea_id)
        raise HTTPException(status_code=404, detail="Idea not found")
    return idea


@router.delete(
    "/ideas/{idea_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Ideas"],
    summary="Delete a business idea and its reports",
)
def delete_idea(idea_id: int, db: Session = Depends(get_db)):
    if not crud.delete_idea(db, idea_id):
        logger.warning("Business idea with id %s not found", idea_id)
        raise HTTPException(status_code=404, detail="Idea not found")
    logger.info("Deleted business idea %s", idea_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
