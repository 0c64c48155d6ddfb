"""
Tests for section and flat question navigation.
"""

from assessment_portal.answers import Section
from assessment_portal.navigator import FlatNavigator, Position, SectionNavigator
from assessment_portal.schemas import Assessment, TaskQuestion
from conftest import make_role_assessment


def _sparse_assessment():
    # one MCQ, one aptitude question and nothing in between
    return Assessment.model_validate(
        make_role_assessment(saqs=[], case_study=None, mcqs=make_role_assessment()["mcqs"][:1])
    )


class TestSectionNavigator:
    def test_walks_sections_in_order(self, role_assessment):
        nav = SectionNavigator(role_assessment)
        pos = nav.first()
        visited = [(pos.section, pos.index)]
        while not nav.is_last(pos):
            pos = nav.next(pos)
            visited.append((pos.section, pos.index))
        assert visited == [
            (Section.MCQ, 0),
            (Section.MCQ, 1),
            (Section.SAQ, 0),
            (Section.CASE_STUDY, 0),
            (Section.APTITUDE, 0),
        ]

    def test_next_skips_empty_sections(self):
        nav = SectionNavigator(_sparse_assessment())
        assert nav.next(Position(Section.MCQ, 0)) == Position(Section.APTITUDE, 0)

    def test_next_on_last_question_stays(self, role_assessment):
        nav = SectionNavigator(role_assessment)
        last = Position(Section.APTITUDE, 0)
        assert nav.is_last(last)
        assert nav.next(last) == last

    def test_first_skips_empty_leading_section(self):
        assessment = Assessment.model_validate(make_role_assessment(mcqs=[]))
        assert SectionNavigator(assessment).first() == Position(Section.SAQ, 0)

    def test_previous_stays_within_section_by_default(self, role_assessment):
        nav = SectionNavigator(role_assessment)
        assert nav.previous(Position(Section.MCQ, 1)) == Position(Section.MCQ, 0)
        assert nav.previous(Position(Section.SAQ, 0)) == Position(Section.SAQ, 0)

    def test_previous_can_cross_sections(self):
        nav = SectionNavigator(_sparse_assessment(), back_across_sections=True)
        assert nav.previous(Position(Section.APTITUDE, 0)) == Position(Section.MCQ, 0)

    def test_jump_stays_in_range(self, role_assessment):
        nav = SectionNavigator(role_assessment)
        pos = Position(Section.MCQ, 0)
        assert nav.jump(pos, 1) == Position(Section.MCQ, 1)
        assert nav.jump(pos, 5) == pos
        assert nav.jump(pos, -1) == pos

    def test_progress_is_per_section(self, role_assessment):
        nav = SectionNavigator(role_assessment)
        assert nav.progress(Position(Section.MCQ, 0)) == 50.0
        assert nav.progress(Position(Section.MCQ, 1)) == 100.0

    def test_refs_have_unique_keys(self, role_assessment):
        # MCQ, SAQ and aptitude all use id 1
        keys = [ref.key for ref in SectionNavigator(role_assessment).refs()]
        assert len(keys) == len(set(keys)) == 5


class TestFlatNavigator:
    def _nav(self):
        return FlatNavigator([TaskQuestion(id=i, title=f"Q{i}") for i in (10, 11, 12)])

    def test_next_and_previous_clamp(self):
        nav = self._nav()
        first = nav.first()
        assert nav.previous(first) == first
        last = nav.jump(first, 2)
        assert nav.is_last(last)
        assert nav.next(last) == last

    def test_jump_to_any_question(self):
        nav = self._nav()
        assert nav.jump(nav.first(), 1) == Position(Section.TASK, 1)
        assert nav.current(Position(Section.TASK, 1)).question_id == 11

    def test_progress_over_whole_task(self):
        nav = self._nav()
        assert round(nav.progress(Position(Section.TASK, 0)), 2) == 33.33
        assert nav.progress(Position(Section.TASK, 2)) == 100.0

    def test_empty_task(self):
        nav = FlatNavigator([])
        assert nav.current(nav.first()) is None
        assert nav.progress(nav.first()) == 0.0
