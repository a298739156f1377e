"""
Tests for annostudio/annotation_utils.py: task list, form values, undo/redo, completion flow.
"""

import unittest
from unittest import mock

from annostudio import annotation_utils as au
from annostudio.exceptions import ApiError
from annostudio.models import (
    AnnotationField,
    CompletionStatus,
    DatasetMergedRows,
    NewColumn,
    PatchRowDataResponse,
    RowStatus,
)


def _data(rows=None, total=0):
    payload = {"datasetId": "ds1", "totalRows": total}
    if rows is not None:
        payload["mergedRows"] = rows
    return DatasetMergedRows.model_validate(payload)


class TestTasks(unittest.TestCase):

    def test_tasks_from_merged_rows(self):
        data = _data(
            [
                {"rowIndex": 0, "data": {"text": "a"}, "completed": True},
                {"rowIndex": 1, "data": {"text": "b"}},
            ],
            total=2,
        )
        tasks = au.build_tasks(data)
        self.assertEqual([t.id for t in tasks], ["row-0", "row-1"])
        self.assertEqual([t.status for t in tasks], ["completed", "pending"])
        self.assertEqual(tasks[1].metadata, {"text": "b"})

    def test_placeholders_are_one_based(self):
        tasks = au.build_tasks(_data(total=3))
        self.assertEqual([t.row_index for t in tasks], [1, 2, 3])
        self.assertEqual(tasks[0].title, "Row 1")

    def test_apply_row_statuses(self):
        tasks = au.build_tasks(_data(total=2))
        tasks = au.apply_row_statuses(tasks, [RowStatus(row_index=2, completed=True)])
        self.assertEqual([t.status for t in tasks], ["pending", "completed"])

    def test_resume_index(self):
        tasks = au.build_tasks(_data([{"rowIndex": i, "completed": i < 2} for i in range(4)]))
        self.assertEqual(au.resume_index(tasks, 3), 3)
        self.assertEqual(au.resume_index(tasks, 0), 2)
        self.assertEqual(au.resume_index(tasks, 10), 2)
        done = au.build_tasks(_data([{"rowIndex": 0, "completed": True}]))
        self.assertEqual(au.resume_index(done, 0), 0)

    def test_mark_task_does_not_mutate(self):
        tasks = au.build_tasks(_data([{"rowIndex": 0, "data": {"a": "1"}}]))
        out = au.mark_task(tasks, 0, status="completed", data={"b": "2"})
        self.assertEqual(out[0].metadata, {"a": "1", "b": "2"})
        self.assertFalse(tasks[0].completed)


class TestFields(unittest.TestCase):

    def test_normalize_defaults_to_annotation(self):
        fields = au.normalize_fields(
            [
                {"csvColumnName": "text", "fieldName": "text"},
                {"csvColumnName": "id", "fieldName": "id", "isAnnotationField": False, "isPrimaryKey": 1},
            ]
        )
        self.assertTrue(fields[0].is_annotation_field)
        self.assertFalse(fields[1].is_annotation_field)
        self.assertTrue(fields[1].is_primary_key)

    def test_split_fields(self):
        fields = [
            AnnotationField(csv_column_name="id", field_name="id"),
            AnnotationField(csv_column_name="label", field_name="label", is_annotation_field=True),
            AnnotationField(csv_column_name="score", field_name="score", is_new_column=True),
        ]
        meta, anno = au.split_fields(fields)
        self.assertEqual([f.field_name for f in meta], ["id"])
        self.assertEqual([f.field_name for f in anno], ["label", "score"])

    def test_media_kind(self):
        img = AnnotationField(csv_column_name="u", field_type="image", is_annotation_field=True)
        self.assertEqual(au.task_media_kind([img]), "image")
        self.assertEqual(au.task_media_kind([]), "text")

    def test_initial_and_collected_values(self):
        fields = [
            AnnotationField(csv_column_name="a", field_name="a", is_annotation_field=True),
            AnnotationField(csv_column_name="b", field_name="b", is_annotation_field=True, is_required=True),
        ]
        values = au.initial_values(fields, {"a": "saved", "b": "  "}, previous={"a": "draft", "b": "draft"})
        self.assertEqual(values, {"a": "saved", "b": "draft"})
        self.assertEqual(au.collect_row_values(fields, {"a": "x", "b": " "}), {"a": "x"})
        self.assertEqual(au.missing_required(fields, {"a": "x", "b": ""}), ["b"])


class TestEditHistory(unittest.TestCase):

    def test_undo_redo(self):
        h = au.EditHistory()
        h.push({"a": "1"})
        h.push({"a": "2"})
        self.assertFalse(h.can_redo)
        self.assertEqual(h.undo(), {"a": "1"})
        self.assertIsNone(h.undo())
        self.assertEqual(h.redo(), {"a": "2"})

    def test_push_after_undo_drops_redo_branch(self):
        h = au.EditHistory()
        for v in ("1", "2", "3"):
            h.push({"a": v})
        h.undo()
        h.push({"a": "x"})
        self.assertFalse(h.can_redo)
        self.assertEqual(h.undo(), {"a": "2"})

    def test_limit(self):
        h = au.EditHistory()
        for i in range(25):
            h.push({"n": i})
        self.assertEqual(len(h.states), au.HISTORY_LIMIT)
        self.assertEqual(h.states[0], {"n": 5})


class TestNewColumnInputs(unittest.TestCase):

    def test_input_kinds(self):
        self.assertEqual(au.input_kind(NewColumn(id="1", column_type="number")), "number")
        self.assertEqual(au.input_kind(NewColumn(id="1", column_type="select", options=["a", "b"])), "radio")
        many = NewColumn(id="1", column_type="select", options=[str(i) for i in range(6)])
        self.assertEqual(au.input_kind(many), "select")
        self.assertEqual(au.input_kind(NewColumn(id="1", column_type="select")), "textarea")
        self.assertEqual(au.input_kind(NewColumn(id="1", column_type="multiselect", options=["a"])), "multiselect")

    def test_selectrange(self):
        col = NewColumn(id="1", column_type="selectrange", validation={"min": 1, "max": 5})
        self.assertEqual(au.choice_options(col), ["1", "2", "3", "4", "5"])
        self.assertEqual(au.input_kind(col), "radio")
        default = NewColumn(id="2", column_type="selectrange")
        self.assertEqual(len(au.selectrange_options(default)), 11)
        self.assertEqual(au.input_kind(default), "select")

    def test_multiselect_value(self):
        self.assertEqual(au.parse_multiselect("a, b,,c "), ["a", "b", "c"])
        self.assertEqual(au.join_multiselect(["a", "", "b"]), "a, b")

    def test_number_input(self):
        self.assertTrue(au.is_number_input("-12.5"))
        self.assertTrue(au.is_number_input(""))
        self.assertFalse(au.is_number_input("12a"))

    def test_new_column_for(self):
        col = NewColumn(id="7", column_name="score")
        f = AnnotationField(csv_column_name="score", is_new_column=True, new_column_id="7")
        self.assertIs(au.new_column_for(f, [col]), col)
        self.assertIsNone(au.new_column_for(AnnotationField(csv_column_name="x"), [col]))


class TestSaveAndComplete(unittest.TestCase):

    def setUp(self):
        self.client = mock.Mock()
        self.fields = [AnnotationField(csv_column_name="label", field_name="label", is_annotation_field=True)]
        self.tasks = au.build_tasks(_data([{"rowIndex": 0}, {"rowIndex": 1}]))

    @mock.patch("annostudio.api.merged_rows.completion_status")
    @mock.patch("annostudio.api.field_selection.update_progress")
    @mock.patch("annostudio.api.merged_rows.mark_completed")
    @mock.patch("annostudio.api.merged_rows.patch_row_data")
    def test_saves_and_advances(self, patch_row, mark_completed, update_progress, status):
        patch_row.return_value = PatchRowDataResponse(success=True, updated_fields=1)
        status.return_value = CompletionStatus(all_completed=False, completed_count=1, total_count=2)

        out = au.save_and_complete(self.client, "ds1", self.tasks, 0, self.fields, {"label": "pos"})

        patch_row.assert_called_once_with(self.client, "ds1", 0, {"label": "pos"})
        mark_completed.assert_called_once_with(self.client, "ds1", 0)
        update_progress.assert_called_once_with(self.client, "ds1", 0, 1)
        self.assertTrue(out.tasks[0].completed)
        self.assertEqual(out.next_index, 1)
        self.assertEqual(out.message, "Successfully saved 1 field(s). Moving to next row...")

    @mock.patch("annostudio.api.merged_rows.completion_status")
    @mock.patch("annostudio.api.field_selection.update_progress")
    @mock.patch("annostudio.api.merged_rows.mark_completed")
    @mock.patch("annostudio.api.merged_rows.patch_row_data")
    def test_blank_values_skip_data_save(self, patch_row, mark_completed, update_progress, status):
        status.return_value = CompletionStatus(all_completed=False)
        out = au.save_and_complete(self.client, "ds1", self.tasks, 1, self.fields, {"label": " "})
        patch_row.assert_not_called()
        self.assertEqual(out.next_index, -1)
        self.assertEqual(out.message, "Row completed.")

    @mock.patch("annostudio.api.merged_rows.completion_status")
    @mock.patch("annostudio.api.field_selection.update_progress")
    @mock.patch("annostudio.api.merged_rows.mark_completed")
    @mock.patch("annostudio.api.merged_rows.patch_row_data")
    def test_bookkeeping_failures_are_tolerated(self, patch_row, mark_completed, update_progress, status):
        patch_row.return_value = PatchRowDataResponse(success=True, updated_fields=0)
        mark_completed.side_effect = ApiError("boom", status_code=500)
        status.side_effect = ApiError("down", status_code=503)
        out = au.save_and_complete(self.client, "ds1", self.tasks, 0, self.fields, {"label": "neg"})
        self.assertTrue(out.tasks[0].completed)
        self.assertIsNone(out.status)
        self.assertEqual(out.message, "Row marked as complete. Moving to next row...")

    @mock.patch("annostudio.api.merged_rows.completion_status")
    @mock.patch("annostudio.api.field_selection.update_progress")
    @mock.patch("annostudio.api.merged_rows.mark_completed")
    @mock.patch("annostudio.api.merged_rows.patch_row_data")
    def test_all_completed_stays_on_row(self, patch_row, mark_completed, update_progress, status):
        patch_row.return_value = PatchRowDataResponse(updated_fields=1)
        status.return_value = CompletionStatus(all_completed=True, completed_count=2, total_count=2)
        out = au.save_and_complete(self.client, "ds1", self.tasks, 0, self.fields, {"label": "pos"})
        self.assertTrue(out.all_completed)
        self.assertEqual(out.next_index, 0)
        self.assertEqual(out.message, "All rows are complete.")

    @mock.patch("annostudio.api.merged_rows.patch_row_data")
    def test_data_save_failure_raises(self, patch_row):
        patch_row.side_effect = ApiError("bad", status_code=400)
        with self.assertRaises(ApiError):
            au.save_and_complete(self.client, "ds1", self.tasks, 0, self.fields, {"label": "pos"})


class TestRecordNavigation(unittest.TestCase):

    @mock.patch("annostudio.api.field_selection.update_progress")
    def test_failure_is_logged_not_raised(self, update_progress):
        update_progress.side_effect = ApiError("down")
        tasks = au.build_tasks(_data(total=2))
        with self.assertLogs("annostudio.annotation_utils", level="WARNING"):
            au.record_navigation(mock.Mock(), "ds1", 1, tasks)
        update_progress.assert_called_once()


if __name__ == "__main__":
    unittest.main()
