from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Query as OrmQuery
from sqlalchemy.orm import Session

from app.api.deps import current_user, require_admin
from app.core.clock import Clock, get_clock
from app.models import Consultant, ConsultantService, User
from app.schemas.review import RatingSummary, ReviewCreate, ReviewListResponse, ReviewRead, ReviewUpdate
from app.services.reviews import ReviewService
from database import get_db

router = APIRouter()


def _page(query: OrmQuery, page: int, per_page: int) -> ReviewListResponse:
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * per_page).limit(per_page).all()
    return ReviewListResponse(
        reviews=[ReviewRead.model_validate(row) for row in rows],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("/reviews", response_model=ReviewRead, status_code=201)
def create_review(
    payload: ReviewCreate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ReviewRead:
    review = ReviewService(db, clock).create_review(
        payload.booking_id,
        user.id,
        payload.rating,
        comment=payload.comment,
        consultant_service_id=payload.consultant_service_id,
    )
    return ReviewRead.model_validate(review)


@router.get("/reviews/mine", response_model=ReviewListResponse)
def list_my_reviews(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ReviewListResponse:
    return _page(ReviewService(db, clock).client_reviews(user.id), page, per_page)


@router.get("/admin/reviews", response_model=ReviewListResponse)
def list_all_reviews(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ReviewListResponse:
    return _page(ReviewService(db, clock).all_by_rating(), page, per_page)


@router.patch("/reviews/{review_id}", response_model=ReviewRead)
def update_review(
    review_id: int,
    payload: ReviewUpdate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ReviewRead:
    review = ReviewService(db, clock).update_review(
        review_id,
        user,
        rating=payload.rating,
        comment=payload.comment,
        consultant_id=payload.consultant_id,
        consultant_service_id=payload.consultant_service_id,
    )
    return ReviewRead.model_validate(review)


@router.delete("/reviews/{review_id}", status_code=204)
def delete_review(
    review_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Response:
    ReviewService(db, clock).delete_review(review_id, user)
    return Response(status_code=204)


@router.post("/reviews/{review_id}/restore", response_model=ReviewRead)
def restore_review(
    review_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ReviewRead:
    return ReviewRead.model_validate(ReviewService(db, clock).restore_review(review_id, user))


@router.get("/consultants/{consultant_id}/reviews", response_model=ReviewListResponse)
def list_consultant_reviews(
    consultant_id: int,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ReviewListResponse:
    return _page(ReviewService(db, clock).consultant_reviews(consultant_id), page, per_page)


@router.get("/services/{service_id}/reviews", response_model=ReviewListResponse)
def list_service_reviews(
    service_id: int,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ReviewListResponse:
    return _page(ReviewService(db, clock).service_reviews(service_id), page, per_page)


@router.get("/consultants/{consultant_id}/ratings", response_model=RatingSummary)
def get_consultant_ratings(consultant_id: int, db: Session = Depends(get_db)) -> RatingSummary:
    # Served from the cached columns; soft-deleted consultants keep their numbers.
    consultant = db.get(Consultant, consultant_id)
    if consultant is None:
        raise HTTPException(status_code=404, detail="Consultant not found")
    return RatingSummary(rating_avg=consultant.rating_avg or 0.0, ratings_count=consultant.ratings_count or 0)


@router.get("/services/{service_id}/ratings", response_model=RatingSummary)
def get_service_ratings(service_id: int, db: Session = Depends(get_db)) -> RatingSummary:
    service = db.get(ConsultantService, service_id)
    if service is None:
        raise HTTPException(status_code=404, detail="Service not found")
    return RatingSummary(rating_avg=service.rating_avg or 0.0, ratings_count=service.ratings_count or 0)
