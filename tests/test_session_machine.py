import pytest

from proctor_quiz.core.models import SessionState, TerminationReason
from proctor_quiz.core.services.session_machine import QuizSessionMachine

from conftest import T0, FakeClock, make_session


def test_machine_rejects_session_without_questions():
    session = make_session(question_count=1)
    session.questions = []
    with pytest.raises(ValueError):
        QuizSessionMachine(session)


def test_activate_untimed_session_leaves_started_at_empty():
    machine = QuizSessionMachine(make_session(), clock=FakeClock())

    snapshot = machine.activate()

    assert snapshot.state is SessionState.IN_PROGRESS
    assert snapshot.started_at is None


def test_activate_stamps_anchor_only_once():
    clock = FakeClock()
    machine = QuizSessionMachine(make_session(time_limit_seconds=300), clock=clock)

    first = machine.activate()
    clock.advance(42)
    second = machine.activate()

    assert first.started_at == T0
    assert second.started_at == T0
    assert second.state is SessionState.IN_PROGRESS


def test_scoring_uses_exact_string_equality():
    machine = QuizSessionMachine(make_session(question_count=3), clock=FakeClock())
    machine.answer("q0", "a0")
    machine.answer("q1", "A1")
    # q2 left unanswered

    snapshot = machine.submit()

    assert snapshot.score == 1
    assert [q.is_correct for q in snapshot.questions] == [True, False, False]
    assert snapshot.termination_reason is TerminationReason.COMPLETED
    assert snapshot.state is SessionState.COMPLETED


def test_submit_is_idempotent_and_seals_the_record():
    clock = FakeClock()
    machine = QuizSessionMachine(make_session(), clock=clock)
    completions = []
    machine.add_completion_listener(completions.append)
    machine.answer("q0", "a0")

    first = machine.submit(TerminationReason.COMPLETED)
    clock.advance(30)
    second = machine.submit(TerminationReason.CHEATING)
    after_answer = machine.answer("q1", "a1")
    after_flag = machine.record_flag()

    assert len(completions) == 1
    assert second.completed_at == first.completed_at
    assert second.termination_reason is TerminationReason.COMPLETED
    assert after_answer.questions[1].user_answer is None
    assert after_flag.cheating_flag_count == 0
    assert second.score == 1


def test_total_time_taken_is_measured_from_started_at():
    clock = FakeClock()
    machine = QuizSessionMachine(make_session(time_limit_seconds=300), clock=clock)
    machine.activate()
    clock.advance(95.7)

    snapshot = machine.submit()

    assert snapshot.total_time_taken_seconds == 95


def test_unknown_question_id_raises_value_error():
    machine = QuizSessionMachine(make_session(), clock=FakeClock())
    with pytest.raises(ValueError):
        machine.answer("nope", "a0")


def test_navigation_stays_within_bounds():
    machine = QuizSessionMachine(make_session(question_count=3), clock=FakeClock())

    assert machine.previous().current_question_index == 0
    assert machine.next().current_question_index == 1
    assert machine.navigate_to(2).current_question_index == 2
    assert machine.next().current_question_index == 2
    assert machine.is_on_last_question()
    assert machine.navigate_to(7).current_question_index == 2
    assert machine.navigate_to(-1).current_question_index == 2


def test_navigation_is_ignored_after_completion():
    machine = QuizSessionMachine(make_session(question_count=3), clock=FakeClock())
    machine.submit()

    assert machine.next().current_question_index == 0
    assert machine.navigate_to(2).current_question_index == 0


def test_change_listener_sees_every_mutation():
    seen = []
    machine = QuizSessionMachine(make_session(), clock=FakeClock(), on_change=seen.append)

    machine.activate()
    machine.answer("q0", "b0")
    machine.next()
    machine.navigate_to(1)  # same index, no change
    machine.record_flag()

    assert [s.current_question_index for s in seen] == [0, 0, 1, 1]
    assert seen[-1].cheating_flag_count == 1
    assert seen[1].questions[0].user_answer == "b0"
