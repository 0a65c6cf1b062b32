"""Result item routes."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from release_qa.database import get_db
from release_qa.schemas.test_run import RescoreResponse, ResultItemUpdate
from release_qa.services.rescoring import set_ignored

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/result-items", tags=["result-items"])


@router.patch("/{item_id}", response_model=RescoreResponse)
def update_result_item(item_id: uuid.UUID, data: ResultItemUpdate, db: Session = Depends(get_db)):
    """Toggle a finding's ignored flag and re-score its URL result and test run."""
    item = set_ignored(db, item_id, data.ignored)
    if item is None:
        raise HTTPException(status_code=404, detail="Result item not found")

    return RescoreResponse(
        id=item.id,
        ignored=item.ignored,
        url_result_score=item.url_result.score,
        test_run_score=item.url_result.test_run.score,
    )
