"""Tests for list-valued application columns and identifier hashing."""
from django.test import TestCase, override_settings

from apps.applications.models import Application
from trialhub.encryption import hash_identifier, normalise_identifier
import trialhub.encryption as enc_module

from tests.utils.builders import TEST_KEY, make_trial, submit


def test_identifier_hash_ignores_case_and_whitespace():
    assert normalise_identifier(" 11010120000101123x ") == "11010120000101123X"
    assert hash_identifier("11010120000101123x") == hash_identifier("11010120000101123X ")


def test_list_columns_default_to_empty_lists():
    application = Application()
    assert application.diseases == []
    assert application.documents == []
    assert application.eligibility_violations == []


@override_settings(FIELD_ENCRYPTION_KEY=TEST_KEY)
class StoredListTests(TestCase):
    databases = {"default", "audit"}

    def setUp(self):
        enc_module._fernet = None

    def tearDown(self):
        enc_module._fernet = None

    def test_list_survives_storage(self):
        application = submit(make_trial(), diseases=["asthma", "高血压"])
        application.refresh_from_db()
        self.assertEqual(application.diseases, ["asthma", "高血压"])
        self.assertEqual(application.documents, [])

    def test_lists_are_queryable(self):
        application = submit(make_trial(), diseases=["asthma"])
        self.assertEqual(
            list(Application.objects.filter(diseases=["asthma"]).values_list("pk", flat=True)),
            [application.pk],
        )
