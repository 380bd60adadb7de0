"""
Candidate Graph Builder

Translates one week's outstanding requests and tutor availability into a
bipartite graph for the matching solver.

Left nodes are (tutee request, acceptable timeslot) pairs. Right nodes are
bookable tutor sessions: every distinct (tutor, day, period) the tutor is
available for is replicated once per remaining weekly session, so the
tutor's capacity is encoded in the graph itself.
"""

import itertools
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from tutormatch.algorithms.bipartite_matching import BipartiteGraph
from tutormatch.models import AvailabilitySlot, Period, Timeslot, TutoringRequest, User, Weekday

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TuteeSlotNode:
    """Left node: one acceptable timeslot of a tutee request"""
    request: TutoringRequest
    timeslot: Timeslot


@dataclass(frozen=True)
class TutorSessionNode:
    """Right node: one bookable instance of a tutor's weekly availability slot"""
    tutor: User
    day: Weekday
    period: Period
    session_index: int

    @property
    def label(self) -> str:
        return Timeslot.label_for(self.day, self.period)

    @property
    def slot_key(self) -> Tuple[int, str]:
        return (self.tutor.id, self.label)


@dataclass
class CandidateGraph:
    """Solver input plus the lookups needed to turn node ids back into entities"""
    graph: BipartiteGraph
    tutee_nodes: Dict[int, TuteeSlotNode] = field(default_factory=dict)
    tutor_nodes: Dict[int, TutorSessionNode] = field(default_factory=dict)
    tutor_requests: Dict[Tuple[int, int], TutoringRequest] = field(default_factory=dict)

    def tutor_request_for(self, tutor_id: int, subject_id: int) -> Optional[TutoringRequest]:
        """Outstanding tutor request of this tutor for this subject, if any."""
        return self.tutor_requests.get((tutor_id, subject_id))


def index_tutor_requests(tutor_requests: Iterable[TutoringRequest]) -> Dict[Tuple[int, int], TutoringRequest]:
    """
    Key tutor requests by (tutor, subject).

    A tutor may offer several subjects at once, so compatibility is checked
    against the request for the tutee's subject, never just "a" request of
    the tutor. If a pair appears twice the lowest id wins.
    """
    index: Dict[Tuple[int, int], TutoringRequest] = {}
    for request in sorted(tutor_requests, key=lambda r: r.id):
        index.setdefault((request.user_id, request.subject_id), request)
    return index


class CandidateGraphBuilder:
    """Builds the candidate graph for a single matching round"""

    def __init__(
        self,
        tutee_requests: Sequence[TutoringRequest],
        tutor_requests: Sequence[TutoringRequest],
        availability_by_user: Mapping[int, Sequence[AvailabilitySlot]],
        sessions_booked: Optional[Mapping[int, int]] = None,
        slots_booked: Optional[Set[Tuple[int, str]]] = None,
    ):
        self.tutee_requests = tutee_requests
        self.tutor_requests = tutor_requests
        self.availability_by_user = availability_by_user
        self.sessions_booked = sessions_booked or {}
        self.slots_booked = slots_booked or set()

    def build(self) -> CandidateGraph:
        # Node ids are local to this build: left ids first, right ids after
        node_ids = itertools.count(1)
        candidate = CandidateGraph(
            graph=BipartiteGraph(),
            tutor_requests=index_tutor_requests(self.tutor_requests),
        )

        self._add_tutee_nodes(candidate, node_ids)
        right_by_label = self._add_tutor_nodes(candidate, node_ids)
        self._add_edges(candidate, right_by_label)

        logger.info(
            f"Built candidate graph: {len(candidate.tutee_nodes)} tutee nodes, "
            f"{len(candidate.tutor_nodes)} tutor nodes, {candidate.graph.edge_count} edges"
        )
        return candidate

    def _add_tutee_nodes(self, candidate: CandidateGraph, node_ids) -> None:
        for request in self.tutee_requests:
            for timeslot in request.possible_timeslots:
                node_id = next(node_ids)
                candidate.graph.add_left_node(node_id)
                candidate.tutee_nodes[node_id] = TuteeSlotNode(request=request, timeslot=timeslot)

    def _add_tutor_nodes(self, candidate: CandidateGraph, node_ids) -> Dict[str, List[int]]:
        processed: Set[Tuple[int, Weekday, Period]] = set()
        right_by_label: Dict[str, List[int]] = defaultdict(list)

        for request in self.tutor_requests:
            tutor = request.user
            remaining = tutor.session_capacity - self.sessions_booked.get(tutor.id, 0)

            for slot in self.availability_by_user.get(tutor.id, ()):
                key = (tutor.id, slot.day_of_week, slot.period)
                if key in processed:
                    continue
                processed.add(key)

                if remaining <= 0 or (tutor.id, slot.label) in self.slots_booked:
                    continue

                for session_index in range(1, remaining + 1):
                    node_id = next(node_ids)
                    candidate.graph.add_right_node(node_id)
                    candidate.tutor_nodes[node_id] = TutorSessionNode(
                        tutor=tutor,
                        day=slot.day_of_week,
                        period=slot.period,
                        session_index=session_index,
                    )
                    right_by_label[slot.label].append(node_id)

        return right_by_label

    def _add_edges(self, candidate: CandidateGraph, right_by_label: Dict[str, List[int]]) -> None:
        for left_id, tutee_node in candidate.tutee_nodes.items():
            tutee_request = tutee_node.request

            # Timeslot labels must agree, so only same-label right nodes are candidates
            for right_id in right_by_label.get(tutee_node.timeslot.label, ()):
                tutor_node = candidate.tutor_nodes[right_id]
                tutor_request = candidate.tutor_request_for(tutor_node.tutor.id, tutee_request.subject_id)
                if tutor_request is None:
                    continue
                if tutor_request.user_id == tutee_request.user_id:
                    continue
                if not tutor_request.year_group.can_tutor(tutee_request.year_group):
                    continue
                candidate.graph.add_edge(left_id, right_id)
