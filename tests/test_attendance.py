"""
Attendance Tests - 팀 출석 입력 / 교차 확인 / 자동 저장 테스트
"""
import asyncio

import pytest

from app.club.attendance import (
    AttendanceRepository,
    AttendanceSessionManager,
    AutoSaver,
    classify_response,
    compute_statistics,
    cross_check,
    prefill_from_responses,
    validate_session,
)
from app.club.context import ClubContext
from app.club.directory import EVENTS
from app.club.errors import ClubError, ErrorCode
from app.club.models import (
    AttendanceRecord,
    AttendanceSession,
    AttendanceType,
    RsvpAnswer,
    SessionMode,
    User,
)

from database import MemoryDocumentStore

from conftest import CLUB_ID, DAY, TEAM_A, TEAM_B, seed_data

COACH = User(id="coach", username="Coach Kim", role="trainer")


def records(*flags):
    return [AttendanceRecord(user_id=f"u{i}", present=flag) for i, flag in enumerate(flags)]


def session(**fields):
    data = {"team_id": TEAM_A, "club_id": CLUB_ID, "date": DAY}
    data.update(fields)
    return AttendanceSession(**data)


async def add_event(store, event_id="e1", day=DAY, responses=None):
    await store.set(EVENTS, event_id, {
        "team_id": TEAM_A,
        "title": "Saturday Training",
        "date": day,
        "responses": responses if responses is not None else {
            "kid": {"status": "confirmed"},
            "p2": {"status": "declined", "message": "sick"},
            "outsider": {"status": "attending"},
        },
    })


@pytest.fixture
def repository(store):
    return AttendanceRepository(store)


@pytest.fixture
def manager(directory, repository):
    return AttendanceSessionManager(directory, repository)


class TestStatistics:
    """출석 통계"""

    @pytest.mark.parametrize("flags", [
        (),
        (True,),
        (False, False),
        (True, False, False),
        (True, True, False, False, False, False, False),
        (True,) * 5 + (False,) * 3,
    ])
    def test_percentage_and_totals(self, flags):
        stats = compute_statistics(records(*flags))
        n = len(flags)
        p = sum(flags)

        assert stats.total == n
        assert stats.present == p
        assert stats.present + stats.absent == stats.total
        assert stats.percentage == (round(100 * p / n, 1) if n else 0)


class TestClassifyResponse:
    """RSVP 분류"""

    @pytest.mark.parametrize("status,expected", [
        ("attending", RsvpAnswer.yes),
        ("confirmed", RsvpAnswer.yes),
        ("declined", RsvpAnswer.no),
        ("maybe", RsvpAnswer.maybe),
        ("tentative", RsvpAnswer.maybe),
        ("waiting", RsvpAnswer.none),
        ("", RsvpAnswer.none),
        (None, RsvpAnswer.none),
    ])
    def test_classify(self, status, expected):
        assert classify_response(status) == expected


class TestCrossCheck:
    """응답 × 출석 교차 집계"""

    def test_buckets_partition_roster_and_responders(self):
        roster = [
            AttendanceRecord(user_id="a", present=True),
            AttendanceRecord(user_id="b", present=False),
            AttendanceRecord(user_id="c", present=True),
            AttendanceRecord(user_id="d", present=False),
            AttendanceRecord(user_id="e", present=True),
        ]
        responses = {
            "a": {"status": "attending"},
            "b": {"status": "attending"},
            "c": {"status": "declined"},
            "d": {"status": "maybe"},
            "x": {"status": "declined"},
        }

        result = cross_check(roster, responses)

        assert result.yes_came == ["a"]
        assert result.yes_missed == ["b"]
        assert result.no_came == ["c"]
        assert result.no_missed == ["x"]
        assert result.maybe_missed == ["d"]
        assert result.none_came == ["e"]

        everyone = [uid for ids in result.model_dump().values() for uid in ids]
        assert sorted(everyone) == ["a", "b", "c", "d", "e", "x"]
        assert len(everyone) == len(set(everyone))
        assert sum(result.counts().values()) == 6

    def test_no_responses(self):
        result = cross_check(records(True, False), {})
        assert result.none_came == ["u0"]
        assert result.none_missed == ["u1"]


class TestPrefill:
    """RSVP 사전 입력"""

    def test_confirmed_marks_present(self):
        roster = [AttendanceRecord(user_id="a"), AttendanceRecord(user_id="b"), AttendanceRecord(user_id="c")]
        responses = {
            "a": {"status": "confirmed"},
            "b": {"status": "declined", "message": "sick"},
            "c": {"status": "tentative"},
        }

        filled = prefill_from_responses(roster, responses)

        assert [r.present for r in filled] == [True, False, False]
        assert filled[1].comment == "RSVP: declined - sick"
        assert filled[2].comment == "RSVP: tentative"
        # 원본 유지
        assert roster[0].present is False

    def test_existing_comment_kept(self):
        roster = [AttendanceRecord(user_id="a", comment="late")]
        filled = prefill_from_responses(roster, {"a": {"status": "declined"}})
        assert filled[0].comment == "late"


class TestValidateSession:
    """세션 검증"""

    def test_first_session_needs_no_name(self):
        validate_session(session(), [])

    def test_second_session_requires_name(self):
        existing = [session(id="s1")]
        with pytest.raises(ClubError) as exc:
            validate_session(session(), existing)
        assert exc.value.code == ErrorCode.SESSION_NAME_REQUIRED

        with pytest.raises(ClubError):
            validate_session(session(session_name="   "), existing)

        validate_session(session(session_name="Evening"), existing)

    def test_duplicate_name_rejected(self):
        existing = [session(id="s1", session_name="Evening")]
        with pytest.raises(ClubError) as exc:
            validate_session(session(session_name="evening"), existing)
        assert exc.value.code == ErrorCode.SESSION_NAME_REQUIRED

    def test_editing_same_session_allowed(self):
        existing = [session(id="s1")]
        validate_session(session(id="s1"), existing)

    def test_other_team_or_day_ignored(self):
        existing = [session(id="s1", team_id=TEAM_B), session(id="s2", date="2026-03-15")]
        validate_session(session(), existing)

    def test_custom_type_required(self):
        with pytest.raises(ClubError) as exc:
            validate_session(session(type=AttendanceType.custom, custom_type=" "), [])
        assert exc.value.code == ErrorCode.CUSTOM_TYPE_REQUIRED

        validate_session(session(type=AttendanceType.custom, custom_type="Camp"), [])


@pytest.mark.asyncio
class TestSessionManager:
    """팀 + 날짜 출석 입력"""

    async def test_load_empty_day(self, manager):
        day = await manager.load_day(CLUB_ID, TEAM_A, DAY)

        assert day.mode == SessionMode.new
        assert day.existing_sessions == []
        assert [r.user_id for r in day.roster] == ["coach", "p1", "kid", "p2"]
        assert day.session.id is None
        assert day.session.statistics.total == 4
        assert day.selected_event_id is None

    async def test_single_event_auto_selected_and_prefilled(self, manager, store):
        await add_event(store)

        day = await manager.load_day(CLUB_ID, TEAM_A, DAY)

        assert day.selected_event_id == "e1"
        assert day.session.event_id == "e1"
        assert day.session.event_title == "Saturday Training"
        present = {r.user_id: r.present for r in day.session.records}
        assert present == {"coach": False, "p1": False, "kid": True, "p2": False}
        comments = {r.user_id: r.comment for r in day.session.records}
        assert comments["p2"] == "RSVP: declined - sick"

    async def test_two_events_not_auto_selected(self, manager, store):
        await add_event(store, "e1")
        await add_event(store, "e2")

        day = await manager.load_day(CLUB_ID, TEAM_A, DAY)

        assert len(day.events) == 2
        assert day.selected_event_id is None
        assert all(not r.present for r in day.session.records)

    async def test_save_computes_statistics_and_cross_check(self, manager, store, repository):
        await add_event(store)
        day = await manager.load_day(CLUB_ID, TEAM_A, DAY)
        work = day.session
        next(r for r in work.records if r.user_id == "p1").present = True

        saved = await manager.save(work, COACH, "first entry")

        assert saved.id is not None
        assert saved.statistics.total == 4
        assert saved.statistics.present == 2
        assert saved.statistics.percentage == 50.0
        assert saved.created_by == "coach"

        check = saved.cross_check
        assert check.yes_came == ["kid"]
        assert check.yes_missed == ["outsider"]
        assert check.no_missed == ["p2"]
        assert check.none_came == ["p1"]
        assert check.none_missed == ["coach"]

        stored = await repository.get_attendance(saved.id)
        assert stored.statistics.present == 2
        assert stored.edit_history[0].editor_name == "Coach Kim"
        assert stored.edit_history[0].description == "first entry"

    async def test_resave_appends_history(self, manager, repository):
        day = await manager.load_day(CLUB_ID, TEAM_A, DAY)
        saved = await manager.save(day.session, COACH, "first")
        saved.records[0].present = True

        again = await manager.save(saved, COACH, "fix coach")

        assert again.id == saved.id
        stored = await repository.get_attendance(saved.id)
        assert [h.description for h in stored.edit_history] == ["first", "fix coach"]
        assert stored.statistics.present == 1
        assert len(await repository.get_attendance_by_date(TEAM_A, DAY)) == 1

    async def test_resave_keeps_stored_history(self, manager, repository):
        day = await manager.load_day(CLUB_ID, TEAM_A, DAY)
        saved = await manager.save(day.session, COACH, "first")
        saved = await manager.save(saved, COACH, "second")

        # 이력 / 생성 정보 없이 같은 ID로 저장
        bare = session(id=saved.id, records=saved.records, created_by="someone")
        third = await manager.save(bare, COACH, "third")

        stored = await repository.get_attendance(saved.id)
        assert [h.description for h in stored.edit_history] == ["first", "second", "third"]
        assert stored.created_at == saved.created_at
        assert stored.created_by == "coach"
        assert third.edit_history == stored.edit_history

    async def test_save_unknown_id(self, manager, repository):
        with pytest.raises(ClubError) as exc:
            await manager.save(session(id="ghost"), COACH)
        assert exc.value.code == ErrorCode.ATTENDANCE_NOT_FOUND
        assert await repository.get_attendance_by_date(TEAM_A, DAY) == []

    async def test_second_session_needs_name(self, manager):
        day = await manager.load_day(CLUB_ID, TEAM_A, DAY)
        await manager.save(day.session, COACH)

        reloaded = await manager.load_day(CLUB_ID, TEAM_A, DAY)
        assert reloaded.mode == SessionMode.new
        assert len(reloaded.existing_sessions) == 1

        with pytest.raises(ClubError) as exc:
            await manager.save(reloaded.session, COACH)
        assert exc.value.code == ErrorCode.SESSION_NAME_REQUIRED

        reloaded.session.session_name = "Evening"
        second = await manager.save(reloaded.session, COACH)
        assert second.session_name == "Evening"

    async def test_load_existing_session_for_edit(self, manager):
        day = await manager.load_day(CLUB_ID, TEAM_A, DAY)
        saved = await manager.save(day.session, COACH)

        edit = await manager.load_day(CLUB_ID, TEAM_A, DAY, session_id=saved.id)

        assert edit.mode == SessionMode.edit
        assert edit.session.id == saved.id

    async def test_custom_statuses_preserved(self, manager, repository):
        day = await manager.load_day(CLUB_ID, TEAM_A, DAY)
        day.session.records[2].custom_statuses = {"injured": True}

        saved = await manager.save(day.session, COACH)

        stored = await repository.get_attendance(saved.id)
        assert stored.records[2].custom_statuses == {"injured": True}

    async def test_unknown_session(self, manager):
        with pytest.raises(ClubError) as exc:
            await manager.load_day(CLUB_ID, TEAM_A, DAY, session_id="ghost")
        assert exc.value.code == ErrorCode.ATTENDANCE_NOT_FOUND

    async def test_unknown_team(self, manager):
        with pytest.raises(ClubError) as exc:
            await manager.load_day(CLUB_ID, "ghost", DAY)
        assert exc.value.code == ErrorCode.TEAM_NOT_FOUND

    async def test_delete(self, manager, repository):
        day = await manager.load_day(CLUB_ID, TEAM_A, DAY)
        saved = await manager.save(day.session, COACH)

        await manager.delete(saved.id)

        assert await repository.get_attendance(saved.id) is None
        with pytest.raises(ClubError):
            await manager.delete(saved.id)


@pytest.mark.asyncio
class TestRepositoryStats:
    """팀 누적 통계"""

    async def test_team_stats(self, repository):
        await repository.create_attendance(session(
            date="2026-03-01",
            records=[AttendanceRecord(user_id="a", present=True), AttendanceRecord(user_id="b")],
            statistics=compute_statistics(records(True, False)),
        ))
        await repository.create_attendance(session(
            date="2026-03-08",
            records=[AttendanceRecord(user_id="a", present=True), AttendanceRecord(user_id="b", present=True)],
            statistics=compute_statistics(records(True, True)),
        ))

        stats = await repository.get_team_attendance_stats(TEAM_A)

        assert stats.total_sessions == 2
        assert stats.total_present == 3
        assert stats.total_absent == 1
        assert stats.average_attendance == 75.0
        assert stats.user_stats["a"].present == 2
        assert stats.user_stats["b"].absent == 1
        assert stats.user_stats["b"].total == 2

        march_first = await repository.get_team_attendance_stats(TEAM_A, "2026-03-01", "2026-03-05")
        assert march_first.total_sessions == 1

    async def test_empty_stats(self, repository):
        stats = await repository.get_team_attendance_stats(TEAM_A)
        assert stats.total_sessions == 0
        assert stats.average_attendance == 0

    async def test_team_history_newest_first(self, repository):
        await repository.create_attendance(session(date="2026-03-01"))
        await repository.create_attendance(session(date="2026-03-08"))

        history = await repository.get_team_attendance(TEAM_A)
        assert [s.date for s in history] == ["2026-03-08", "2026-03-01"]

    async def test_update_missing(self, repository):
        with pytest.raises(ClubError) as exc:
            await repository.update_attendance("ghost", {"records": []})
        assert exc.value.code == ErrorCode.ATTENDANCE_NOT_FOUND


@pytest.mark.asyncio
class TestAutoSaver:
    """자동 저장 debounce"""

    @staticmethod
    def counter(fail=False):
        calls = []

        async def save():
            calls.append(1)
            if fail:
                raise RuntimeError("network down")
            return len(calls)

        return save, calls

    async def test_saves_after_quiet_period(self):
        save, calls = self.counter()
        saver = AutoSaver(save, delay=0.02)

        saver.touch()
        assert saver.status == "pending"
        await asyncio.sleep(0.1)

        assert calls == [1]
        assert saver.status == "saved"
        assert saver.last_saved_at is not None

    async def test_burst_of_edits_saves_once(self):
        save, calls = self.counter()
        saver = AutoSaver(save, delay=0.05)

        for _ in range(5):
            saver.touch()
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.15)

        assert calls == [1]

    async def test_suppressed_initial_population(self):
        save, calls = self.counter()
        saver = AutoSaver(save, delay=0.01)

        saver.suppress_next()
        saver.touch()
        await asyncio.sleep(0.05)

        assert calls == []
        assert saver.pending is False

        saver.touch()
        await asyncio.sleep(0.05)
        assert calls == [1]

    async def test_failure_sets_error_without_retry(self):
        save, calls = self.counter(fail=True)
        saver = AutoSaver(save, delay=0.01)

        saver.touch()
        await asyncio.sleep(0.1)

        assert saver.status == "error"
        assert isinstance(saver.last_error, RuntimeError)
        assert calls == [1]

    async def test_flush_saves_immediately(self):
        save, calls = self.counter()
        saver = AutoSaver(save, delay=10)

        saver.touch()
        result = await saver.flush()

        assert result == 1
        assert saver.pending is False
        assert calls == [1]

    async def test_flush_failure_raises(self):
        save, _ = self.counter(fail=True)
        saver = AutoSaver(save, delay=10)

        with pytest.raises(RuntimeError):
            await saver.flush()
        assert saver.status == "error"

    async def test_saves_do_not_overlap(self):
        running = []
        overlaps = []

        async def save():
            if running:
                overlaps.append(1)
            running.append(1)
            await asyncio.sleep(0.03)
            running.pop()

        saver = AutoSaver(save, delay=0.01)
        saver.touch()
        await asyncio.sleep(0.02)
        assert saver.status == "saving"

        await saver.flush()

        assert overlaps == []
        assert saver.status == "saved"

    async def test_close_cancels_pending(self):
        save, calls = self.counter()
        saver = AutoSaver(save, delay=0.02)

        saver.touch()
        await saver.close()
        saver.touch()
        await asyncio.sleep(0.08)

        assert calls == []


@pytest.mark.asyncio
class TestDrafts:
    """출석 입력 초안 (자동 저장 연동)"""

    async def test_open_does_not_save(self, context):
        draft = await context.drafts.open(CLUB_ID, TEAM_A, DAY, COACH)
        await asyncio.sleep(0.15)

        assert draft.saver.status == "idle"
        assert await context.attendance_repository.get_attendance_by_date(TEAM_A, DAY) == []
        await context.close()

    async def test_edit_triggers_autosave(self, context):
        draft = await context.drafts.open(CLUB_ID, TEAM_A, DAY, COACH)

        draft.toggle_presence("kid")
        draft.set_comment("p2", "late")
        await asyncio.sleep(0.2)

        assert draft.saver.status == "saved"
        assert draft.session.id is not None
        stored = await context.attendance_repository.get_attendance(draft.session.id)
        assert stored.statistics.present == 1
        assert stored.edit_history[-1].description == "자동 저장"
        await context.close()

    async def test_save_now_with_description(self, context):
        draft = await context.drafts.open(CLUB_ID, TEAM_A, DAY, COACH)
        draft.set_presence("coach", True)

        saved = await draft.save_now("manual")

        assert saved.edit_history[-1].description == "manual"
        assert draft.saver.pending is False
        await context.close()

    async def test_validation_error_sets_status(self, context):
        first = await context.drafts.open(CLUB_ID, TEAM_A, DAY, COACH)
        await first.save_now()

        second = await context.drafts.open(CLUB_ID, TEAM_A, DAY, COACH)
        second.toggle_presence("kid")
        await asyncio.sleep(0.2)

        assert second.saver.status == "error"
        assert second.to_dict()["error"] == ErrorCode.SESSION_NAME_REQUIRED
        await context.close()

    async def test_unknown_member(self, context):
        draft = await context.drafts.open(CLUB_ID, TEAM_A, DAY, COACH)
        with pytest.raises(ClubError):
            draft.toggle_presence("ghost")
        await context.close()

    async def test_close_all_cancels_pending(self, context):
        draft = await context.drafts.open(CLUB_ID, TEAM_A, DAY, COACH)
        draft.toggle_presence("kid")

        await context.close()
        await asyncio.sleep(0.15)

        assert await context.attendance_repository.get_attendance_by_date(TEAM_A, DAY) == []
        with pytest.raises(ClubError):
            context.drafts.get(draft.id)

    async def test_idle_drafts_evicted(self, store, settings):
        context = ClubContext(store, settings.model_copy(update={"draft_idle_seconds": 0.05}))
        old = await context.drafts.open(CLUB_ID, TEAM_A, DAY, COACH)
        kept = await context.drafts.open(CLUB_ID, TEAM_B, DAY, COACH)
        await asyncio.sleep(0.1)

        context.drafts.get(kept.id)
        await context.drafts.open(CLUB_ID, TEAM_A, DAY, COACH)

        with pytest.raises(ClubError):
            context.drafts.get(old.id)
        assert context.drafts.get(kept.id) is kept
        assert len(context.drafts) == 2
        await context.close()

    async def test_pending_draft_not_evicted(self, store, settings):
        context = ClubContext(store, settings.model_copy(update={"draft_idle_seconds": 0.01}))
        draft = await context.drafts.open(CLUB_ID, TEAM_A, DAY, COACH)
        draft.toggle_presence("kid")
        draft.last_active -= 1

        assert await context.drafts.evict_idle() == []
        assert context.drafts.get(draft.id) is draft
        await context.close()


class SlowStore(MemoryDocumentStore):
    """쓰기마다 잠시 대기하는 저장소"""

    def __init__(self, initial, write_delay=0.05):
        super().__init__(initial)
        self.write_delay = write_delay

    async def set(self, collection, doc_id, data):
        await asyncio.sleep(self.write_delay)
        await super().set(collection, doc_id, data)

    async def update(self, collection, doc_id, patch):
        await asyncio.sleep(self.write_delay)
        await super().update(collection, doc_id, patch)


@pytest.mark.asyncio
class TestDraftConcurrentSave:
    """저장 진행 중 수정 / 중복 저장"""

    @pytest.fixture
    def slow_context(self, settings):
        return ClubContext(SlowStore(seed_data()), settings)

    async def test_edit_during_save_kept(self, slow_context):
        draft = await slow_context.drafts.open(CLUB_ID, TEAM_A, DAY, COACH)
        draft.set_presence("kid", True)

        saving = asyncio.create_task(draft.save_now())
        await asyncio.sleep(0.01)
        assert draft.saver.status == "saving"

        draft.set_presence("p2", True)
        saved = await saving

        assert {r.user_id for r in saved.records if r.present} == {"kid"}
        assert {r.user_id for r in draft.session.records if r.present} == {"kid", "p2"}
        assert draft.session.id == saved.id
        assert draft.saver.status == "pending"

        await asyncio.sleep(0.3)

        stored = await slow_context.attendance_repository.get_attendance(saved.id)
        assert {r.user_id for r in stored.records if r.present} == {"kid", "p2"}
        assert len(stored.edit_history) == 2
        assert draft.saver.status == "saved"
        await slow_context.close()

    async def test_manual_save_waits_for_timer_save(self, slow_context):
        draft = await slow_context.drafts.open(CLUB_ID, TEAM_A, DAY, COACH)
        draft.toggle_presence("kid")

        # 타이머 저장 쓰기 도중
        await asyncio.sleep(0.07)
        assert draft.saver.status == "saving"

        saved = await draft.save_now("manual")

        sessions = await slow_context.attendance_repository.get_attendance_by_date(TEAM_A, DAY)
        assert [s.id for s in sessions] == [saved.id]
        assert [h.description for h in saved.edit_history] == ["자동 저장", "manual"]
        await slow_context.close()
