# app/services/reward_ledger.py
"""
Per-user credit ledger.
- a completion of someone else's shared content grants the author one credit
  of the content's type; the completion row is the idempotency key
- every `milestone_interval` completions pays a one-time bonus
- redeem is a single conditional UPDATE, so balances never go below zero
- balance / claim are reads only and never create a ledger row
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import pytz
from pydantic import BaseModel, ConfigDict
from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.errors import Forbidden, InsufficientCredits, InvalidSessionState, NotFound, ValidationError
from app.models.sessions import StudySession
from app.models.shared_post import ContentCompletion, SharedPost
from app.models.user_credits import CreditHistory, UserCredits
from app.models.user_profile import UserProfile
from app.schemas.rewards import Balance, ClaimOut, GrantResult, HistoryEntry, RedeemOut, RewardsOut
from app.services.notifications import Notifier
from app.services.session_tracker import to_utc

logger = logging.getLogger(__name__)

CREDIT_TYPES = ("exam", "practice")
HISTORY_LIMIT = 50


class RewardConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    milestone_interval: int = 5
    milestone_exam_bonus: int = 5
    milestone_practice_bonus: int = 5
    monthly_exam_reward_cap: Optional[int] = None
    monthly_practice_reward_cap: Optional[int] = None
    timezone: str = "Asia/Riyadh"

    @classmethod
    def from_settings(cls, settings) -> "RewardConfig":
        return cls(
            milestone_interval=settings.milestone_interval,
            milestone_exam_bonus=settings.milestone_exam_bonus,
            milestone_practice_bonus=settings.milestone_practice_bonus,
            monthly_exam_reward_cap=settings.monthly_exam_reward_cap,
            monthly_practice_reward_cap=settings.monthly_practice_reward_cap,
            timezone=settings.timezone,
        )


def _insert(db: Session, model):
    """INSERT construct that supports ON CONFLICT for the bound dialect."""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


def _reset_read(retry_state) -> None:
    # the failed statement left the session unusable; reads hold nothing worth keeping
    db = retry_state.args[1]
    db.rollback()
    logger.warning(
        "[REWARD] read failed (attempt %s), retrying: %s",
        retry_state.attempt_number,
        retry_state.outcome.exception(),
    )


# reads only; grant / redeem are never retried
read_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    retry=retry_if_exception_type(OperationalError),
    before_sleep=_reset_read,
    reraise=True,
)


class RewardLedger:
    def __init__(self, config: RewardConfig, notifier: Notifier):
        self.config = config
        self.notifier = notifier

    # ---------- Grants ----------
    def record_completion(
        self,
        db: Session,
        post_id: UUID,
        completer_id: UUID,
        now: datetime,
        session_id: Optional[UUID] = None,
    ) -> GrantResult:
        now = to_utc(now)
        post = db.get(SharedPost, post_id)
        if post is None or post.status != "active":
            raise NotFound("post_not_found")
        if session_id is not None:
            self._check_completed_session(db, session_id, completer_id, post)

        owner_id = post.author_id
        if owner_id == completer_id:
            logger.info("[REWARD] self completion ignored post=%s user=%s", post_id, completer_id)
            return GrantResult(status="self_completion", owner_id=owner_id)

        # the unique (post_id, user_id) row decides whether this event was already applied
        completion_id = db.execute(
            _insert(db, ContentCompletion)
            .values(
                id=uuid4(),
                post_id=post_id,
                user_id=completer_id,
                session_id=session_id,
                completed_at=now,
            )
            .on_conflict_do_nothing(index_elements=["post_id", "user_id"])
            .returning(ContentCompletion.id)
        ).scalar_one_or_none()

        if completion_id is None:
            logger.info("[REWARD] duplicate completion post=%s user=%s", post_id, completer_id)
            return GrantResult(status="duplicate", owner_id=owner_id)

        ledger = self._lock_ledger(db, owner_id)
        self._roll_month(ledger, now)

        credit_type = post.content_type
        ledger.total_completions += 1

        if self._month_cap_reached(ledger, credit_type):
            logger.info(
                "[REWARD] monthly %s cap reached, no credit owner=%s completion=%s",
                credit_type, owner_id, completion_id,
            )
            status = "capped"
        else:
            if credit_type == "exam":
                ledger.exam_credits += 1
                ledger.exam_credits_earned_month += 1
            else:
                ledger.practice_credits += 1
                ledger.practice_credits_earned_month += 1
            self._append_history(
                db, owner_id, "earned",
                exam=1 if credit_type == "exam" else 0,
                practice=1 if credit_type == "practice" else 0,
                reason=f"{credit_type}_completion",
                now=now,
                completion_id=completion_id,
            )
            self.notifier.notify(
                db, owner_id, "reward_earned",
                {"content_type": credit_type, "post_id": post_id, "completer_id": completer_id},
                now=now,
            )
            status = "granted"

        ledger.updated_at = now
        milestone = self.milestone_check(db, ledger, now)
        db.flush()

        logger.info(
            "[REWARD] %s %s credit owner=%s total_completions=%s",
            status, credit_type, owner_id, ledger.total_completions,
        )
        return GrantResult(
            status=status,
            completion_id=completion_id,
            owner_id=owner_id,
            credit_type=credit_type,
            milestone=milestone,
        )

    def on_session_complete(self, db: Session, session, now: datetime) -> Optional[GrantResult]:
        """Tracker hook: a session started from a shared post was completed."""
        post = db.get(SharedPost, session.shared_post_id)
        if post is None or post.status != "active":
            logger.warning("[REWARD] session=%s completed for unavailable post=%s", session.id, session.shared_post_id)
            return None
        return self.record_completion(db, post.id, session.user_id, now, session_id=session.id)

    def milestone_check(self, db: Session, ledger: UserCredits, now: datetime) -> Optional[int]:
        """Pays the bonus for a newly reached milestone; returns its completion count, else None."""
        milestone_number = ledger.total_completions // self.config.milestone_interval
        if milestone_number <= ledger.last_awarded_milestone:
            return None

        exam_bonus = self.config.milestone_exam_bonus
        practice_bonus = self.config.milestone_practice_bonus
        milestone = milestone_number * self.config.milestone_interval

        ledger.exam_credits += exam_bonus
        ledger.practice_credits += practice_bonus
        ledger.last_awarded_milestone = milestone_number
        self._append_history(
            db, ledger.user_id, "earned",
            exam=exam_bonus, practice=practice_bonus,
            reason=f"milestone_{milestone}", now=now,
        )
        self.notifier.notify(
            db, ledger.user_id, "reward_earned",
            {"milestone": milestone, "exam_credits": exam_bonus, "practice_credits": practice_bonus},
            now=now,
        )
        logger.info("[REWARD] milestone %s paid user=%s", milestone, ledger.user_id)
        return milestone

    def grant_credits(
        self,
        db: Session,
        admin_user: dict,
        target_user_id: UUID,
        exam_credits: int,
        practice_credits: int,
        reason: str,
        now: datetime,
    ) -> Balance:
        """Manual grant from the admin panel."""
        profile = admin_user.get("profile")
        if profile is None or profile.role != "admin":
            logger.warning("[REWARD] non-admin grant attempt by user=%s", admin_user.get("id"))
            raise Forbidden("admin_only")
        if exam_credits < 0:
            raise ValidationError("exam_credits", "must_not_be_negative")
        if practice_credits < 0:
            raise ValidationError("practice_credits", "must_not_be_negative")
        if db.get(UserProfile, target_user_id) is None:
            raise NotFound("user_not_found")

        now = to_utc(now)
        ledger = self._lock_ledger(db, target_user_id)
        ledger.exam_credits += exam_credits
        ledger.practice_credits += practice_credits
        ledger.updated_at = now
        self._append_history(
            db, target_user_id, "earned",
            exam=exam_credits, practice=practice_credits,
            reason=f"admin_grant_{reason}", now=now,
        )
        db.flush()
        logger.info(
            "[REWARD] admin=%s granted exam=%s practice=%s to user=%s",
            admin_user.get("id"), exam_credits, practice_credits, target_user_id,
        )
        return Balance(exam_credits=ledger.exam_credits, practice_credits=ledger.practice_credits)

    # ---------- Redemption ----------
    def redeem(self, db: Session, user_id: UUID, credit_type: str, now: datetime) -> RedeemOut:
        if credit_type not in CREDIT_TYPES:
            raise ValidationError("credit_type", "unknown_credit_type")

        now = to_utc(now)
        column = UserCredits.exam_credits if credit_type == "exam" else UserCredits.practice_credits
        row = db.execute(
            update(UserCredits)
            .where(UserCredits.user_id == user_id, column > 0)
            .values({column: column - 1, UserCredits.updated_at: now})
            .returning(UserCredits.exam_credits, UserCredits.practice_credits)
            .execution_options(synchronize_session=False)
        ).first()

        if row is None:
            logger.info("[REWARD] redeem refused, no %s credits user=%s", credit_type, user_id)
            raise InsufficientCredits("insufficient_credits", creditType=credit_type)

        self._append_history(
            db, user_id, "redeemed",
            exam=1 if credit_type == "exam" else 0,
            practice=1 if credit_type == "practice" else 0,
            reason=f"{credit_type}_redemption",
            now=now,
        )
        db.flush()
        logger.info("[REWARD] redeemed %s credit user=%s", credit_type, user_id)
        return RedeemOut(exam_credits=row.exam_credits, practice_credits=row.practice_credits, redeemed=True)

    # ---------- Reads ----------
    @read_retry
    def get_balance(self, db: Session, user_id: UUID) -> Balance:
        row = db.execute(
            select(UserCredits.exam_credits, UserCredits.practice_credits)
            .where(UserCredits.user_id == user_id)
        ).first()
        if row is None:
            return Balance(exam_credits=0, practice_credits=0)
        return Balance(exam_credits=row.exam_credits, practice_credits=row.practice_credits)

    @read_retry
    def get_rewards(self, db: Session, user_id: UUID) -> RewardsOut:
        ledger = db.scalars(select(UserCredits).where(UserCredits.user_id == user_id)).first()
        total_shares = db.scalar(
            select(func.count(SharedPost.id)).where(
                SharedPost.author_id == user_id, SharedPost.status == "active"
            )
        ) or 0
        history = db.scalars(
            select(CreditHistory)
            .where(CreditHistory.user_id == user_id)
            .order_by(CreditHistory.created_at.desc(), CreditHistory.id.desc())
            .limit(HISTORY_LIMIT)
        ).all()

        interval = self.config.milestone_interval
        total = ledger.total_completions if ledger else 0
        return RewardsOut(
            exam_credits=ledger.exam_credits if ledger else 0,
            practice_credits=ledger.practice_credits if ledger else 0,
            total_completions=total,
            next_milestone=(total // interval + 1) * interval,
            progress_to_next=total % interval,
            total_shares=total_shares,
            credit_history=[
                HistoryEntry(
                    type=h.type,
                    exam_credits=h.exam_credits,
                    practice_credits=h.practice_credits,
                    reason=h.reason,
                    timestamp=to_utc(h.created_at),
                )
                for h in history
            ],
        )

    @read_retry
    def claim(self, db: Session, user_id: UUID) -> ClaimOut:
        """Reconciliation view. Grants happen only in record_completion; this never writes."""
        row = db.execute(
            select(UserCredits.exam_credits, UserCredits.practice_credits)
            .where(UserCredits.user_id == user_id)
        ).first()
        completions = db.scalar(
            select(func.count(ContentCompletion.id))
            .join(SharedPost, SharedPost.id == ContentCompletion.post_id)
            .where(SharedPost.author_id == user_id, ContentCompletion.user_id != user_id)
        ) or 0
        balance = Balance(
            exam_credits=row.exam_credits if row else 0,
            practice_credits=row.practice_credits if row else 0,
        )
        return ClaimOut(success=True, credits_claimed=0, new_balance=balance, completions_of_my_content=completions)

    # ---------- helpers ----------
    def _check_completed_session(self, db: Session, session_id: UUID, completer_id: UUID, post: SharedPost) -> None:
        """A completion may cite a session only if it is the completer's own, finished run of this content."""
        session = db.get(StudySession, session_id)
        if session is None:
            raise NotFound("session_not_found")
        if session.user_id != completer_id:
            logger.warning("[REWARD] user=%s cited session=%s of another user", completer_id, session_id)
            raise Forbidden("session_not_owned")
        if session.status != "completed":
            raise InvalidSessionState("session_not_completed", status=session.status)
        if session.session_type != post.content_type or session.shared_post_id not in (None, post.id):
            raise ValidationError("session_id", "session_does_not_match_post")

    def _lock_ledger(self, db: Session, user_id: UUID) -> UserCredits:
        db.execute(
            _insert(db, UserCredits)
            .values(
                id=uuid4(),
                user_id=user_id,
                exam_credits=0,
                practice_credits=0,
                total_completions=0,
                last_awarded_milestone=0,
                exam_credits_earned_month=0,
                practice_credits_earned_month=0,
            )
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        return db.scalars(
            select(UserCredits)
            .where(UserCredits.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).one()

    def _roll_month(self, ledger: UserCredits, now: datetime) -> None:
        month = now.astimezone(pytz.timezone(self.config.timezone)).strftime("%Y-%m")
        if ledger.month_key != month:
            ledger.month_key = month
            ledger.exam_credits_earned_month = 0
            ledger.practice_credits_earned_month = 0

    def _month_cap_reached(self, ledger: UserCredits, credit_type: str) -> bool:
        if credit_type == "exam":
            cap, earned = self.config.monthly_exam_reward_cap, ledger.exam_credits_earned_month
        else:
            cap, earned = self.config.monthly_practice_reward_cap, ledger.practice_credits_earned_month
        return cap is not None and earned >= cap

    def _append_history(
        self,
        db: Session,
        user_id: UUID,
        type_: str,
        *,
        exam: int,
        practice: int,
        reason: str,
        now: datetime,
        completion_id: Optional[UUID] = None,
    ) -> None:
        db.add(
            CreditHistory(
                user_id=user_id,
                type=type_,
                exam_credits=exam,
                practice_credits=practice,
                reason=reason,
                completion_id=completion_id,
                created_at=now,
            )
        )
