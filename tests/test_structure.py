import os
import unittest
from datetime import datetime, timedelta

os.environ.setdefault("SEATSYNC_DB_URL", "sqlite://")

from sqlmodel import Session, select  # noqa: E402

from seatsync import exams, repository, structure  # noqa: E402
from seatsync.db import init_db, make_engine  # noqa: E402
from seatsync.errors import ConflictError, NotFoundError, ValidationError  # noqa: E402
from seatsync.layout import LayoutTriple  # noqa: E402
from seatsync.models import Block, Floor, Room, Seat, Status, Student  # noqa: E402


class StructureTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine("sqlite://")
        init_db(self.engine)
        self.session = Session(self.engine)

    def tearDown(self):
        self.session.close()
        self.engine.dispose()

    def _floor(self, block_name="Science", floor_number=1):
        block = structure.create_block(self.session, block_name)
        floor = structure.create_floor(self.session, block.id, floor_number)
        return block, floor

    def _seat_keys(self, room_id):
        return [(s.row_label, s.bench_number, s.seat_number) for s in repository.list_seats(self.session, room_id)]

    def _book_seat(self, room_id, exam_date):
        exam = exams.create_exam(self.session, "Physics", exam_date)
        student = Student(register_number=f"R{exam.id}", email="s@example.com", department_code="PHY")
        self.session.add(student)
        self.session.commit()
        seat = repository.list_seats(self.session, room_id)[0]
        exams.allocate_seat(self.session, exam.id, seat.id, student.id)
        return exam


class TestBlocks(StructureTestCase):
    def test_create_defaults_to_active(self):
        block = structure.create_block(self.session, "Science")
        self.assertEqual(block.status, Status.active)

    def test_duplicate_name_rejected(self):
        structure.create_block(self.session, "Science")
        with self.assertRaises(ValidationError):
            structure.create_block(self.session, "Science")

    def test_names_are_case_sensitive(self):
        structure.create_block(self.session, "Science")
        structure.create_block(self.session, "science")
        self.assertEqual(len(structure.list_blocks(self.session)), 2)

    def test_update_missing_block(self):
        with self.assertRaises(NotFoundError):
            structure.update_block(self.session, 999, name="X")

    def test_rename_to_taken_name_rejected(self):
        structure.create_block(self.session, "Science")
        arts = structure.create_block(self.session, "Arts")
        with self.assertRaises(ValidationError):
            structure.update_block(self.session, arts.id, name="Science")

    def test_rename_and_status(self):
        arts = structure.create_block(self.session, "Arts")
        updated = structure.update_block(self.session, arts.id, name="Humanities", status=Status.inactive)
        self.assertEqual((updated.name, updated.status), ("Humanities", Status.inactive))

    def test_delete_with_floors_conflicts(self):
        block, _ = self._floor()
        with self.assertRaises(ConflictError):
            structure.delete_block(self.session, block.id)
        self.assertIsNotNone(self.session.get(Block, block.id))

    def test_scenario_e_delete_empty_block(self):
        block = structure.create_block(self.session, "Empty")
        structure.delete_block(self.session, block.id)
        self.assertIsNone(self.session.get(Block, block.id))

    def test_list_blocks_counts_floors(self):
        block, _ = self._floor()
        structure.create_floor(self.session, block.id, 2)
        counts = {b.name: n for b, n in structure.list_blocks(self.session)}
        self.assertEqual(counts, {"Science": 2})


class TestFloors(StructureTestCase):
    def test_scenario_b_duplicate_floor_number(self):
        block, _ = self._floor()
        with self.assertRaises(ValidationError):
            structure.create_floor(self.session, block.id, 1)

    def test_same_number_in_other_block_allowed(self):
        self._floor("Science", 1)
        _, floor = self._floor("Arts", 1)
        self.assertEqual(floor.floor_number, 1)

    def test_unknown_block(self):
        with self.assertRaises(NotFoundError):
            structure.create_floor(self.session, 42, 1)

    def test_update_to_duplicate_number(self):
        block, floor = self._floor()
        structure.create_floor(self.session, block.id, 2)
        with self.assertRaises(ValidationError):
            structure.update_floor(self.session, floor.id, floor_number=2)

    def test_cannot_disable_with_active_rooms(self):
        block, floor = self._floor()
        structure.create_room(self.session, block.id, floor.id, "LH-101", 60)
        with self.assertRaises(ConflictError):
            structure.update_floor(self.session, floor.id, status=Status.inactive)
        self.assertEqual(self.session.get(Floor, floor.id).status, Status.active)

    def test_disable_after_rooms_disabled(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-101", 60)
        structure.disable_room(self.session, room.id)
        updated = structure.update_floor(self.session, floor.id, status=Status.inactive)
        self.assertEqual(updated.status, Status.inactive)

    def test_delete_with_rooms_conflicts(self):
        block, floor = self._floor()
        structure.create_room(self.session, block.id, floor.id, "LH-101", 60)
        with self.assertRaises(ConflictError):
            structure.delete_floor(self.session, floor.id)

    def test_delete_empty_floor(self):
        _, floor = self._floor()
        structure.delete_floor(self.session, floor.id)
        self.assertIsNone(self.session.get(Floor, floor.id))


class TestRooms(StructureTestCase):
    def test_scenario_a_room_with_layout(self):
        block, floor = self._floor()
        room = structure.create_room(
            self.session, block.id, floor.id, "LH-101", 60, exam_usable=True, layout=LayoutTriple(5, 4, 2)
        )
        seats = repository.list_seats(self.session, room.id)
        self.assertEqual(len(seats), 40)
        self.assertEqual(sorted({s.row_label for s in seats}), list("ABCDE"))
        self.assertEqual({s.bench_number for s in seats}, {1, 2, 3, 4})
        self.assertEqual({s.seat_number for s in seats}, {1, 2})

    def test_partial_layout_creates_no_seats(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-102", 30, layout=LayoutTriple(5, 0, 2))
        self.assertEqual(repository.count_seats(self.session, room.id), 0)
        self.assertEqual(room.total_rows, 5)

    def test_floor_must_belong_to_block(self):
        _, floor = self._floor("Science", 1)
        other, _ = self._floor("Arts", 1)
        with self.assertRaises(ValidationError):
            structure.create_room(self.session, other.id, floor.id, "LH-101", 60)

    def test_room_code_unique_per_floor(self):
        block, floor = self._floor()
        floor2 = structure.create_floor(self.session, block.id, 2)
        structure.create_room(self.session, block.id, floor.id, "LH-101", 60)
        with self.assertRaises(ValidationError):
            structure.create_room(self.session, block.id, floor.id, "LH-101", 60)
        # Same code on another floor is fine.
        structure.create_room(self.session, block.id, floor2.id, "LH-101", 60)

    def test_capacity_must_be_positive(self):
        block, floor = self._floor()
        with self.assertRaises(ValidationError):
            structure.create_room(self.session, block.id, floor.id, "LH-101", 0)

    def test_containment_holds(self):
        block, floor = self._floor()
        structure.create_room(self.session, block.id, floor.id, "LH-101", 60)
        for room in self.session.exec(select(Room)).all():
            self.assertEqual(self.session.get(Floor, room.floor_id).block_id, room.block_id)

    def test_layout_change_regenerates(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-101", 60, layout=LayoutTriple(5, 4, 2))
        structure.update_room(self.session, room.id, total_rows=3, seats_per_bench=3)
        self.assertEqual(repository.count_seats(self.session, room.id), 3 * 4 * 3)

    def test_zero_dimension_clears_seats(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-101", 60, layout=LayoutTriple(5, 4, 2))
        structure.configure_layout(self.session, room.id, LayoutTriple(5, 0, 2))
        self.assertEqual(repository.count_seats(self.session, room.id), 0)

    def test_regeneration_idempotent(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-101", 60)
        structure.configure_layout(self.session, room.id, LayoutTriple(3, 2, 2))
        first = self._seat_keys(room.id)
        structure.configure_layout(self.session, room.id, LayoutTriple(4, 2, 2))
        structure.configure_layout(self.session, room.id, LayoutTriple(3, 2, 2))
        self.assertEqual(self._seat_keys(room.id), first)
        self.assertEqual(len(first), 12)

    def test_scenario_c_future_booking_blocks_layout(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-101", 60, layout=LayoutTriple(5, 4, 2))
        before = [s.id for s in repository.list_seats(self.session, room.id)]
        self._book_seat(room.id, datetime.utcnow() + timedelta(days=1))

        with self.assertRaises(ConflictError):
            structure.update_room(self.session, room.id, total_rows=6)

        after = [s.id for s in repository.list_seats(self.session, room.id)]
        self.assertEqual(after, before)
        self.assertEqual(self.session.get(Room, room.id).total_rows, 5)

    def test_future_booking_still_applies_other_fields(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-101", 60, layout=LayoutTriple(2, 2, 2))
        self._book_seat(room.id, datetime.utcnow() + timedelta(days=1))
        with self.assertRaises(ConflictError):
            structure.update_room(self.session, room.id, capacity=80, total_rows=3)
        refreshed = self.session.get(Room, room.id)
        self.assertEqual((refreshed.capacity, refreshed.total_rows), (80, 2))

    def test_past_booking_blocks_layout(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-101", 60, layout=LayoutTriple(2, 2, 2))
        self._book_seat(room.id, datetime.utcnow() - timedelta(days=30))
        with self.assertRaises(ConflictError) as ctx:
            structure.update_room(self.session, room.id, capacity=70, total_rows=3)
        self.assertIn("examination history", ctx.exception.message)
        self.assertEqual(repository.count_seats(self.session, room.id), 8)
        self.assertEqual(self.session.get(Room, room.id).capacity, 70)

    def test_history_stays_with_its_room(self):
        block, floor = self._floor()
        used = structure.create_room(self.session, block.id, floor.id, "LH-101", 60, layout=LayoutTriple(1, 1, 1))
        self._book_seat(used.id, datetime.utcnow() - timedelta(days=30))
        with self.assertRaises(ConflictError):
            structure.configure_layout(self.session, used.id, LayoutTriple(0, 0, 0))
        fresh = structure.create_room(self.session, block.id, floor.id, "LH-102", 60, layout=LayoutTriple(1, 1, 1))

        self.assertEqual(repository.count_allocations(self.session, used.id), 1)
        self.assertEqual(repository.count_allocations(self.session, fresh.id), 0)
        with self.assertRaises(ConflictError):
            structure.delete_room(self.session, used.id)
        structure.delete_room(self.session, fresh.id)
        self.assertIsNone(self.session.get(Room, fresh.id))

    def test_layout_past_row_z_keeps_row_order(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "HALL", 28, layout=LayoutTriple(28, 1, 1))
        labels = [s.row_label for s in repository.list_seats(self.session, room.id)]
        self.assertEqual(labels[:2], ["A", "B"])
        self.assertEqual(labels[-3:], ["Z", "AA", "AB"])
        layout = structure.get_room_layout(self.session, room.id)
        self.assertEqual([s.row_index for s in layout.seats], list(range(1, 29)))

    def test_room_layout_carries_block_and_floor(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-101", 60, layout=LayoutTriple(1, 2, 1))
        layout = structure.get_room_layout(self.session, room.id)
        self.assertEqual(layout.block.name, "Science")
        self.assertEqual(layout.floor.floor_number, 1)
        self.assertEqual(layout.seat_count, 2)

    def test_delete_room_with_history_conflicts(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-101", 60, layout=LayoutTriple(1, 1, 1))
        self._book_seat(room.id, datetime.utcnow() - timedelta(days=30))
        with self.assertRaises(ConflictError):
            structure.delete_room(self.session, room.id)
        self.assertIsNotNone(self.session.get(Room, room.id))

    def test_delete_room_removes_seats(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-101", 60, layout=LayoutTriple(2, 2, 2))
        structure.delete_room(self.session, room.id)
        self.assertIsNone(self.session.get(Room, room.id))
        self.assertEqual(self.session.exec(select(Seat).where(Seat.room_id == room.id)).all(), [])

    def test_disable_keeps_seats(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-101", 60, layout=LayoutTriple(2, 2, 2))
        disabled = structure.disable_room(self.session, room.id)
        self.assertEqual(disabled.status, Status.inactive)
        self.assertEqual(repository.count_seats(self.session, room.id), 8)

    def test_missing_room(self):
        with self.assertRaises(NotFoundError):
            structure.disable_room(self.session, 404)
        with self.assertRaises(NotFoundError):
            structure.get_room_layout(self.session, 404)

    def test_rename_to_existing_code_on_floor(self):
        block, floor = self._floor()
        structure.create_room(self.session, block.id, floor.id, "LH-101", 60)
        room = structure.create_room(self.session, block.id, floor.id, "LH-102", 60)
        with self.assertRaises(ValidationError):
            structure.update_room(self.session, room.id, room_code="LH-101")


class TestBulkRooms(StructureTestCase):
    def test_creates_all(self):
        block, floor = self._floor()
        drafts = [structure.RoomDraft("R1", 30), structure.RoomDraft("R2", 40)]
        rooms = structure.bulk_create_rooms(self.session, block.id, floor.id, drafts)
        self.assertEqual([r.room_code for r in rooms], ["R1", "R2"])
        self.assertTrue(all(r.exam_usable for r in rooms))

    def test_duplicate_in_payload_aborts_batch(self):
        block, floor = self._floor()
        drafts = [structure.RoomDraft("R1", 30), structure.RoomDraft("r1", 40)]
        with self.assertRaises(ValidationError):
            structure.bulk_create_rooms(self.session, block.id, floor.id, drafts)
        self.assertEqual(structure.list_rooms(self.session, floor_id=floor.id), [])

    def test_existing_code_aborts_batch(self):
        block, floor = self._floor()
        structure.create_room(self.session, block.id, floor.id, "R2", 30)
        drafts = [structure.RoomDraft("R1", 30), structure.RoomDraft("R2", 40)]
        with self.assertRaises(ValidationError):
            structure.bulk_create_rooms(self.session, block.id, floor.id, drafts)
        codes = [r.room_code for r in structure.list_rooms(self.session, floor_id=floor.id)]
        self.assertEqual(codes, ["R2"])

    def test_bad_capacity_aborts_batch(self):
        block, floor = self._floor()
        drafts = [structure.RoomDraft("R1", 30), structure.RoomDraft("R2", 0)]
        with self.assertRaises(ValidationError):
            structure.bulk_create_rooms(self.session, block.id, floor.id, drafts)
        self.assertEqual(structure.list_rooms(self.session, floor_id=floor.id), [])

    def test_empty_payload(self):
        block, floor = self._floor()
        with self.assertRaises(ValidationError):
            structure.bulk_create_rooms(self.session, block.id, floor.id, [])


class TestRepository(StructureTestCase):
    def test_load_room_only_requested_relations(self):
        block, floor = self._floor()
        room = structure.create_room(self.session, block.id, floor.id, "LH-101", 60)
        view = repository.load_room(self.session, room.id)
        self.assertIsNone(view.block)
        self.assertIsNone(view.floor)
        view = repository.load_room(self.session, room.id, related=("block", "floor"))
        self.assertEqual(view.block.name, "Science")
        self.assertEqual(view.floor.floor_number, 1)

    def test_load_floor_with_block(self):
        _, floor = self._floor()
        view = repository.load_floor(self.session, floor.id, related=("block",))
        self.assertEqual(view.block.name, "Science")
        self.assertIsNone(repository.load_floor(self.session, 999))

    def test_unknown_relation(self):
        with self.assertRaises(ValueError):
            repository.load_room(self.session, 1, related=("seats",))


if __name__ == "__main__":
    unittest.main()
