# main.py

# Server Instructions:
# Run the server using:
# uvicorn ballotbox.main:app --reload
# Access the API at:
# http://127.0.0.1:8000/docs
# If you face a "database locked" issue with SQLite, check if any process is using the database:
# lsof | grep ballotbox.db

import datetime
import logging
import secrets
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

from ballotbox import archive, catalog
from ballotbox.ballot import ROLE_ADMIN, ROLE_STUDENT, BallotSession, Identity
from ballotbox.config import app_config
from ballotbox.database import Base, SessionLocal, engine
from ballotbox.errors import AlreadyVotedError, BallotError, NotFoundError, StoreError, ValidationError
from ballotbox.flags import FlagStore
from ballotbox.reports import export_filename, result_rows, to_csv
from ballotbox.schemas import (
    AdminLogin,
    ArchiveIn,
    ArchiveOut,
    BallotOut,
    CandidateIn,
    CandidateOut,
    CandidateUpdate,
    CategoryIn,
    CategoryOut,
    CategoryUpdate,
    ResetIn,
    Selection,
    StudentLogin,
)
from ballotbox.tally import build_results, compute_tally
from ballotbox.voters import resolve_student

# Initialize logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize app
app = FastAPI(title="Student Election Ballot Box")

Base.metadata.create_all(bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

SECRET_KEY = app_config.SECRET_KEY
if not SECRET_KEY:
    raise ValueError("SECRET_KEY is not set in the configuration.")

app.add_middleware(
    SessionMiddleware,
    secret_key=SECRET_KEY,
    session_cookie=app_config.SESSION_COOKIE,
    max_age=app_config.SESSION_MAX_AGE,
    https_only=app_config.HTTPS_ONLY,
    same_site=app_config.SAME_SITE,
)

ERROR_STATUS_CODES = (
    (NotFoundError, 404),
    (AlreadyVotedError, 409),
    (ValidationError, 400),
    (StoreError, 503),
)

@app.exception_handler(BallotError)
async def ballot_error_handler(request: Request, exc: BallotError):
    status_code = 500
    for error_class, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_class):
            status_code = code
            break
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


def current_identity(request: Request):
    return Identity.from_dict(request.session.get('user'))

def require_student(request: Request) -> Identity:
    identity = current_identity(request)
    if identity is None or identity.role != ROLE_STUDENT:
        logger.warning("No student in session. Rejecting ballot request.")
        raise HTTPException(status_code=401, detail="Please log in as a student to vote.")
    return identity

def require_admin(request: Request) -> Identity:
    identity = current_identity(request)
    if identity is None or not identity.is_admin:
        logger.warning("Admin endpoint requested without an admin session.")
        raise HTTPException(status_code=403, detail="Admin login required.")
    return identity

def ballot_payload(ballot: BallotSession):
    return BallotOut(
        selections={str(k): v for k, v in ballot.selections.items()},
        complete=ballot.is_complete(),
        missing=[category.name for category in ballot.missing_categories()],
        current_category_id=ballot.current_category.id if ballot.current_category else None,
        progress=ballot.progress,
    )

def load_ballot(request: Request, db: Session, identity: Identity) -> BallotSession:
    return BallotSession.load(
        db, identity.student_id, request.session.get('selection'), request.session.get('cursor', 0)
    )

def live_results(db: Session):
    tally = compute_tally(db, page_size=app_config.TALLY_PAGE_SIZE, max_pages=app_config.TALLY_MAX_PAGES)
    return tally, build_results(catalog.list_categories(db), catalog.list_candidates(db), tally)

# Routes

@app.post("/login/student")
def login_student(body: StudentLogin, request: Request, db: Session = Depends(get_db)):
    """
    Resolve a student login and open a ballot session.

    The store's voted flag decides whether the student may vote; a voted
    marker left in this browser is only cleared when the store disagrees.
    """
    voter = resolve_student(db, body.student_id, body.name)
    flags = FlagStore(request.session)

    if voter.has_voted:
        logger.info(f"Student {voter.student_id} has already voted and cannot vote again.")
        raise AlreadyVotedError("You have already voted. Each student can only vote once.")
    if flags.is_marked_voted(voter.student_id):
        logger.info(f"Clearing stale voted marker for student {voter.student_id}.")
        flags.unmark_voted(voter.student_id)

    identity = Identity(role=ROLE_STUDENT, student_id=voter.student_id)
    request.session['user'] = identity.to_dict()
    request.session['selection'] = {}
    request.session['cursor'] = 0
    logger.info(f"Student {voter.student_id} logged in.")
    return {"user": identity.to_dict()}

@app.post("/login/admin")
def login_admin(body: AdminLogin, request: Request):
    expected_password = app_config.ADMIN_PASSWORD
    valid = (
        expected_password is not None
        and secrets.compare_digest(body.username, app_config.ADMIN_USERNAME)
        and secrets.compare_digest(body.password, expected_password)
    )
    if not valid:
        logger.warning(f"Admin login failed for username '{body.username}'.")
        raise HTTPException(status_code=401, detail="Invalid admin credentials")

    identity = Identity(role=ROLE_ADMIN, username=body.username)
    request.session['user'] = identity.to_dict()
    logger.info(f"Admin {body.username} logged in.")
    return {"user": identity.to_dict()}

@app.post("/logout")
def logout(request: Request):
    request.session.pop('user', None)
    request.session.pop('selection', None)
    request.session.pop('cursor', None)
    return {"logged_out": True}

@app.get("/categories", response_model=List[CategoryOut])
def get_categories(db: Session = Depends(get_db)):
    return catalog.list_categories(db)

@app.get("/candidates", response_model=List[CandidateOut])
def get_candidates(category_id: Optional[int] = None, db: Session = Depends(get_db)):
    return catalog.list_candidates(db, category_id)

@app.get("/ballot", response_model=BallotOut)
def show_ballot(request: Request, identity: Identity = Depends(require_student), db: Session = Depends(get_db)):
    ballot = load_ballot(request, db, identity)
    return ballot_payload(ballot)

@app.post("/ballot/select", response_model=BallotOut)
def select_candidate(body: Selection, request: Request, identity: Identity = Depends(require_student),
                     db: Session = Depends(get_db)):
    ballot = load_ballot(request, db, identity)
    ballot.select_candidate(body.category_id, body.candidate_id)
    request.session['selection'] = {str(k): v for k, v in ballot.selections.items()}
    return ballot_payload(ballot)

@app.post("/ballot/next", response_model=BallotOut)
def next_category(request: Request, identity: Identity = Depends(require_student), db: Session = Depends(get_db)):
    ballot = load_ballot(request, db, identity)
    ballot.next_category()
    request.session['cursor'] = ballot.current_index
    return ballot_payload(ballot)

@app.post("/ballot/previous", response_model=BallotOut)
def previous_category(request: Request, identity: Identity = Depends(require_student),
                      db: Session = Depends(get_db)):
    ballot = load_ballot(request, db, identity)
    ballot.previous_category()
    request.session['cursor'] = ballot.current_index
    return ballot_payload(ballot)

@app.post("/ballot/submit")
def submit(request: Request, identity: Identity = Depends(require_student), db: Session = Depends(get_db)):
    """
    Submit the ballot held in the session. On failure the choices stay in the
    session so the student can retry.
    """
    ballot = load_ballot(request, db, identity)
    votes = ballot.submit(db, flags=FlagStore(request.session))
    request.session['selection'] = {}
    request.session['cursor'] = 0
    return {"submitted": True, "entries": len(votes)}

# Admin routes

@app.get("/admin/results")
def admin_results(identity: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    tally, results = live_results(db)
    return {"total_voters": tally.total_voters, "results": results}

@app.get("/admin/results.csv")
def admin_results_csv(identity: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    _, results = live_results(db)
    filename = export_filename(datetime.date.today())
    return Response(
        content=to_csv(result_rows(results)),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@app.post("/admin/categories", response_model=CategoryOut, status_code=201)
def add_category(body: CategoryIn, identity: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return catalog.create_category(db, **body.model_dump())

@app.put("/admin/categories/{category_id}", response_model=CategoryOut)
def edit_category(category_id: int, body: CategoryUpdate, identity: Identity = Depends(require_admin),
                  db: Session = Depends(get_db)):
    return catalog.update_category(db, category_id, **body.model_dump(exclude_unset=True))

@app.delete("/admin/categories/{category_id}")
def remove_category(category_id: int, identity: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    catalog.delete_category(db, category_id)
    return {"deleted": category_id}

@app.post("/admin/candidates", response_model=CandidateOut, status_code=201)
def add_candidate(body: CandidateIn, identity: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return catalog.create_candidate(db, **body.model_dump())

@app.put("/admin/candidates/{candidate_id}", response_model=CandidateOut)
def edit_candidate(candidate_id: int, body: CandidateUpdate, identity: Identity = Depends(require_admin),
                   db: Session = Depends(get_db)):
    return catalog.update_candidate(db, candidate_id, **body.model_dump(exclude_unset=True))

@app.delete("/admin/candidates/{candidate_id}")
def remove_candidate(candidate_id: int, identity: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    catalog.delete_candidate(db, candidate_id)
    return {"deleted": candidate_id}

@app.get("/admin/archives", response_model=List[ArchiveOut])
def get_archives(identity: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return archive.list_archives(db)

@app.post("/admin/archives", response_model=ArchiveOut, status_code=201)
def create_archive(body: ArchiveIn, identity: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return archive.archive_current(
        db,
        body.election_name,
        archived_by=identity.username or ROLE_ADMIN,
        page_size=app_config.TALLY_PAGE_SIZE,
        max_pages=app_config.TALLY_MAX_PAGES,
    )

@app.get("/admin/archives/{archive_id}", response_model=ArchiveOut)
def get_archive(archive_id: int, identity: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return archive.get_archive(db, archive_id)

@app.delete("/admin/archives/{archive_id}")
def remove_archive(archive_id: int, identity: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    archive.delete_archive(db, archive_id)
    return {"deleted": archive_id}

@app.post("/admin/reset")
def reset(body: ResetIn, request: Request, identity: Identity = Depends(require_admin),
          db: Session = Depends(get_db)):
    deleted = archive.reset_votes(
        db,
        body.confirmation,
        flags=FlagStore(request.session),
        expected_phrase=app_config.RESET_CONFIRMATION_PHRASE,
    )
    logger.info(f"Votes reset by admin {identity.username}.")
    return {"deleted_votes": deleted}
