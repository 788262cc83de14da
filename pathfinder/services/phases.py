"""Pathway phase catalogue.

Task bodies, rubrics and quizzes are served by the content layer; this module
only keeps what progression needs: task ids, kinds, XP and which tasks gate
phase completion.
"""

import enum
from dataclasses import dataclass


class TaskKind(str, enum.Enum):
    VIDEO = 'video'
    EXERCISE = 'exercise'
    ASSIGNMENT = 'assignment'
    RESEARCH = 'research'
    PEER_REVIEW = 'peer_review'
    EXPERIMENT = 'experiment'
    SUBMISSION = 'submission'


@dataclass(frozen=True)
class Task:
    id: str
    kind: TaskKind
    title: str
    xp: int
    required: bool = True


@dataclass(frozen=True)
class PhaseDefinition:
    number: int
    slug: str
    title: str
    tasks: tuple[Task, ...]

    @property
    def xp_total(self) -> int:
        return sum(task.xp for task in self.tasks)

    def earned_xp(self, completed_task_ids) -> int:
        done = set(completed_task_ids)
        return sum(task.xp for task in self.tasks if task.id in done)

    def required_tasks_satisfied(self, completed_task_ids) -> bool:
        done = set(completed_task_ids)
        return all(task.id in done for task in self.tasks if task.required)

    def summary(self, completed_task_ids=()) -> dict:
        return {
            'phase': self.number,
            'id': self.slug,
            'title': self.title,
            'xpTotal': self.xp_total,
            'xpEarned': self.earned_xp(completed_task_ids),
            'tasks': [
                {'id': task.id, 'kind': task.kind.value, 'title': task.title, 'xp': task.xp, 'required': task.required}
                for task in self.tasks
            ],
        }


K = TaskKind

PHASES: dict[int, PhaseDefinition] = {
    phase.number: phase
    for phase in (
        PhaseDefinition(1, 'phase-1-ideation', 'Phase 1: Ideation', (
            Task('p1-t1-problem-video', K.VIDEO, 'Finding a Problem Worth Solving', 50),
            Task('p1-t2-problem-statement', K.EXERCISE, 'Problem Statement Worksheet', 80),
            Task('p1-t3-empathy-map', K.EXERCISE, 'Empathy Map: Know Your User', 100),
            Task('p1-t4-competitor-scan', K.RESEARCH, '30-Minute Competitor Scan', 90),
            Task('p1-t5-peer-feedback', K.PEER_REVIEW, 'Peer Feedback Round', 60),
            Task('p1-t6-concepts-quiz', K.ASSIGNMENT, 'Micro-Quiz: Problem vs Solution Thinking', 50),
            Task('p1-t7-onepager', K.SUBMISSION, 'Submit Your One-Page Concept Summary', 150),
        )),
        PhaseDefinition(2, 'phase-2-validation', 'Phase 2: Validation', (
            Task('p2-t1-validation-video', K.VIDEO, 'What is Validation? (Evidence over Opinions)', 50),
            Task('p2-t2-riskiest-assumption', K.EXERCISE, 'Riskiest Assumption & Hypothesis', 90),
            Task('p2-t3-interview-script', K.ASSIGNMENT, 'Problem Interview Plan (3-5 interviews)', 120),
            Task('p2-t4-synthesis', K.EXERCISE, 'Interview Synthesis: Insights & Patterns', 100),
            Task('p2-t5-experiment', K.EXPERIMENT, 'Lightweight Experiment (Choose One)', 120),
            Task('p2-t6-micro-quiz', K.ASSIGNMENT, 'Micro-Quiz: Interviews, Metrics, and Bias', 50),
            Task('p2-t7-validation-report', K.SUBMISSION, 'Submit Validation Report', 150),
        )),
        PhaseDefinition(3, 'phase-3-build', 'Phase 3: Build', (
            Task('p3-t1-mvp-scope', K.EXERCISE, 'Define MVP Scope & Acceptance Criteria', 90),
            Task('p3-t2-design-flow', K.EXERCISE, 'Core Flow Wireframes & Data Model Sketch', 110),
            Task('p3-t3-tech-plan', K.ASSIGNMENT, 'Tech Plan: Stack, Risks, and Work Board', 90),
            Task('p3-t4-build-v0', K.ASSIGNMENT, 'Ship V0 of the MVP', 150),
            Task('p3-t5-user-tests', K.EXPERIMENT, 'Run 3 Usability Tests', 120),
            Task('p3-t6-iterate-v1', K.EXERCISE, 'Iterate to V1 (Fix Top Issues)', 110),
            Task('p3-t7-demo', K.SUBMISSION, 'Submit MVP Demo', 160),
        )),
        PhaseDefinition(4, 'phase-4-eic-deep-dive', 'Phase 4: EIC Deep Dive', (
            Task('p4-t1-eic-intro-video', K.VIDEO, "Welcome to BSU's Entrepreneurship Innovation Center", 50),
            Task('p4-t2-resource-map', K.RESEARCH, 'EIC Website Exploration & Resource Map', 110),
            Task('p4-t3-staff-eir-spotlight', K.ASSIGNMENT, 'Staff & EiR Spotlight (Pick Two)', 90),
            Task('p4-t4-program-match', K.EXERCISE, 'Program Match & Action Plan', 100),
            Task('p4-t5-event-engagement', K.ASSIGNMENT, 'Attend an EIC Event (or Watch a Recording)', 110),
            Task('p4-t6-inperson-visit', K.EXERCISE, 'Visit the EIC', 90),
            Task('p4-t7-deep-dive-report', K.SUBMISSION, 'Submit EIC Deep Dive Report', 150),
        )),
        PhaseDefinition(5, 'phase-5-launch-pitch', 'Phase 5: Launch & Pitch', (
            Task('p5-t1-positioning-icp', K.EXERCISE, 'Positioning Statement & ICP', 100),
            Task('p5-t2-gtm-plan', K.ASSIGNMENT, 'Go-to-Market Plan: Channels & Funnel Targets', 120),
            Task('p5-t3-pricing-unit-econ', K.EXERCISE, 'Pricing & Unit Economics', 110),
            Task('p5-t4-launch-sprint', K.EXPERIMENT, 'Launch Sprint (Beta/Pilot or Waitlist)', 140),
            Task('p5-t5-pitch-deck', K.ASSIGNMENT, 'Pitch Deck Draft', 140),
            Task('p5-t6-pitch-practice', K.PEER_REVIEW, '2-Minute Pitch Practice', 100),
            Task('p5-t7-launch-packet', K.SUBMISSION, 'Submit Launch Packet', 160),
        )),
    )
}

FINAL_PHASE = max(PHASES)


def get_phase(number: int) -> PhaseDefinition | None:
    return PHASES.get(number)
