from __future__ import annotations

import unittest

from terragrunt_runner.changes import parse_resource_changes
from terragrunt_runner.dialects import OPENTOFU, TERRAFORM, detect_dialect, get_dialect
from terragrunt_runner.types import ResourceChanges


class ParseResourceChangesTests(unittest.TestCase):
    def test_summary_line_variants(self) -> None:
        cases = {
            "Plan: 1 to add, 0 to change, 0 to destroy.": ResourceChanges(to_add=1),
            "Plan: 0 to add, 1 to change, 0 to destroy.": ResourceChanges(to_change=1),
            "Plan: 0 to add, 0 to change, 1 to destroy.": ResourceChanges(to_destroy=1),
            "Plan: 2 to add, 3 to change, 1 to destroy.": ResourceChanges(to_add=2, to_change=3, to_destroy=1),
            "Plan: 5 to add 2 to change 1 to destroy": ResourceChanges(to_add=5, to_change=2, to_destroy=1),
        }
        for text, expected in cases.items():
            with self.subTest(text=text):
                self.assertEqual(parse_resource_changes(text), expected)

    def test_import_and_replace_counts(self) -> None:
        got = parse_resource_changes("Plan: 2 to import, 1 to add, 0 to change, 0 to destroy, 3 to replace.")
        self.assertEqual(got, ResourceChanges(to_add=1, to_import=2, to_replace=3))
        self.assertFalse(got.no_changes)

    def test_summary_wins_over_heuristics(self) -> None:
        text = "  # a will be created\n  # b will be created\nPlan: 1 to add, 0 to change, 0 to destroy."
        self.assertEqual(parse_resource_changes(text).to_add, 1)

    def test_ansi_in_summary_line(self) -> None:
        got = parse_resource_changes("\x1b[1mPlan:\x1b[0m 4 to add, 0 to change, 2 to destroy.")
        self.assertEqual((got.to_add, got.to_destroy), (4, 2))

    def test_no_op_phrase_forces_zero_counts(self) -> None:
        for text in ("No changes", "No changes. Your infrastructure matches the configuration.\nPlan: 3 to add, 0 to change, 0 to destroy."):
            with self.subTest(text=text):
                got = parse_resource_changes(text)
                self.assertTrue(got.no_changes)
                self.assertEqual(got.total(), 0)

    def test_heuristic_counts_without_summary(self) -> None:
        text = "\n".join(
            [
                "  # aws_instance.a will be created",
                "  # aws_instance.b will be created",
                "  # aws_instance.c will be updated in-place",
                "  # aws_instance.d will be destroyed",
                "  # aws_instance.e must be replaced",
                "  # aws_instance.f will be imported",
                "  # aws_instance.g has moved to aws_instance.h",
            ]
        )
        got = parse_resource_changes(text)
        self.assertEqual(
            got,
            ResourceChanges(to_add=2, to_change=1, to_destroy=1, to_replace=1, to_import=1, to_move=1),
        )

    def test_unrecognized_output_defaults_to_no_changes(self) -> None:
        got = parse_resource_changes("Some other output without plan")
        self.assertTrue(got.no_changes)
        self.assertEqual(got.total(), 0)

    def test_pending_phrase_without_counts_is_not_no_op(self) -> None:
        got = parse_resource_changes("Warning: resources will be read during apply")
        self.assertFalse(got.no_changes)

    def test_counts_never_negative(self) -> None:
        got = parse_resource_changes("Plan: 0 to add, 0 to change, 0 to destroy.")
        self.assertGreaterEqual(min(got.to_add, got.to_change, got.to_destroy, got.to_replace), 0)
        self.assertTrue(got.no_changes)


class DialectTests(unittest.TestCase):
    def test_lookup_by_name(self) -> None:
        self.assertIs(get_dialect("tofu"), OPENTOFU)
        self.assertIs(get_dialect(" OpenTofu "), OPENTOFU)
        self.assertIs(get_dialect("terraform"), TERRAFORM)
        self.assertIs(get_dialect(None), TERRAFORM)
        self.assertIs(get_dialect("pulumi"), TERRAFORM)

    def test_detect_from_output(self) -> None:
        self.assertIs(detect_dialect("OpenTofu will perform the following actions:"), OPENTOFU)
        self.assertIs(detect_dialect("Terraform will perform the following actions:"), TERRAFORM)


if __name__ == "__main__":
    unittest.main()
