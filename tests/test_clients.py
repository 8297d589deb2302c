import pytest
import requests

from audience_sync.core.exceptions import ConfigurationError, MailchimpAPIError, OmetriaAPIError
from audience_sync.core.models import OmetriaContact
from audience_sync.integrations.mailchimp.client import MEMBER_FIELDS, MailchimpClient
from audience_sync.integrations.ometria.client import OmetriaClient


class FakeResponse:
    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self):
        if self._data is None:
            raise ValueError("No JSON object could be decoded")
        return self._data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


class RecordingSession:
    """Stands in for requests.Session.request/post."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


MEMBERS_BODY = {
    "total_items": 2,
    "members": [
        {
            "id": "m1",
            "email_address": "jane@example.com",
            "full_name": "Jane Public",
            "status": "subscribed",
            "merge_fields": {"FNAME": "Jane", "LNAME": "Public"},
        },
        {"id": "m2", "email_address": "bob@example.com", "status": "pending"},
    ],
}


@pytest.fixture
def mailchimp():
    return MailchimpClient(api_key="key-us1", base_url="https://us1.api.mailchimp.com/3.0/")


def test_mailchimp_requires_credentials():
    with pytest.raises(ConfigurationError):
        MailchimpClient(api_key="", base_url="https://us1.api.mailchimp.com/3.0")
    with pytest.raises(ConfigurationError):
        MailchimpClient(api_key="key", base_url="")


def test_mailchimp_uses_basic_auth(mailchimp):
    assert mailchimp.session.auth == ("anystring", "key-us1")
    assert mailchimp.base_url == "https://us1.api.mailchimp.com/3.0"


def test_get_members_page_builds_query(mailchimp):
    session = RecordingSession(FakeResponse(data=MEMBERS_BODY))
    mailchimp.session.request = session

    page = mailchimp.get_members_page("list1", 1800, 900, "2026-10-18T10:00:00+00:00")

    (method, url), kwargs = session.calls[0]
    assert method == "GET"
    assert url == "https://us1.api.mailchimp.com/3.0/lists/list1/members"
    assert kwargs["params"] == {
        "fields": ",".join(MEMBER_FIELDS),
        "offset": 1800,
        "count": 900,
        "since_last_changed": "2026-10-18T10:00:00+00:00",
    }
    assert kwargs["timeout"] == 30
    assert page.total_items == 2
    assert [m.id for m in page.members] == ["m1", "m2"]
    assert page.members[0].merge_fields.first_name == "Jane"
    assert page.members[1].full_name == ""


def test_get_members_page_without_watermark_omits_filter(mailchimp):
    session = RecordingSession(FakeResponse(data=MEMBERS_BODY))
    mailchimp.session.request = session

    mailchimp.get_members_page("list1", 0, 900)

    assert "since_last_changed" not in session.calls[0][1]["params"]


def test_field_projection_is_minimal():
    assert MEMBER_FIELDS == [
        "total_items",
        "members.id",
        "members.email_address",
        "members.full_name",
        "members.status",
        "members.merge_fields.FNAME",
        "members.merge_fields.LNAME",
    ]


def test_get_members_page_http_error(mailchimp):
    mailchimp.session.request = RecordingSession(
        FakeResponse(status_code=429, data={"title": "Too Many Requests"})
    )

    with pytest.raises(MailchimpAPIError) as exc_info:
        mailchimp.get_members_page("list1", 0, 900)

    assert exc_info.value.status_code == 429
    assert "Too Many Requests" in str(exc_info.value)


def test_get_members_page_undecodable_body(mailchimp):
    mailchimp.session.request = RecordingSession(FakeResponse(status_code=200, data=None, text="<html>"))

    with pytest.raises(MailchimpAPIError, match="decode"):
        mailchimp.get_members_page("list1", 0, 900)


def test_get_members_page_unexpected_shape(mailchimp):
    mailchimp.session.request = RecordingSession(FakeResponse(data={"members": [{"email_address": "x"}]}))

    with pytest.raises(MailchimpAPIError, match="Unexpected members response"):
        mailchimp.get_members_page("list1", 0, 900)


def test_get_members_page_network_error(mailchimp):
    mailchimp.session.request = RecordingSession(error=requests.exceptions.ConnectionError("refused"))

    with pytest.raises(MailchimpAPIError, match="Request failed"):
        mailchimp.get_members_page("list1", 0, 900)


def test_get_all_lists(mailchimp):
    session = RecordingSession(FakeResponse(data={
        "lists": [
            {"id": "l1", "name": "Newsletter", "stats": {"member_count": 10, "total_contacts": 12}},
            {"id": "l2", "name": "VIP"},
        ]
    }))
    mailchimp.session.request = session

    lists = mailchimp.get_all_lists()

    assert session.calls[0][1]["params"] == {"count": 1000, "include_total_contacts": "true"}
    assert [audience.id for audience in lists] == ["l1", "l2"]
    assert lists[0].stats.total_contacts == 12
    assert lists[1].stats.member_count == 0


def test_test_connection(mailchimp):
    mailchimp.session.request = RecordingSession(FakeResponse(data={"health_status": "Everything's Chimpy!"}))
    assert mailchimp.test_connection()

    mailchimp.session.request = RecordingSession(FakeResponse(status_code=401, data={"title": "API Key Invalid"}))
    assert not mailchimp.test_connection()


@pytest.fixture
def ometria():
    return OmetriaClient(api_key="om-key", endpoint="https://api.ometria.com/v2/push")


def contacts():
    return [OmetriaContact(id="m1", firstname="Jane", lastname="Public", email="jane@example.com",
                           status="subscribed")]


def test_ometria_requires_credentials():
    with pytest.raises(ConfigurationError):
        OmetriaClient(api_key="", endpoint="https://api.ometria.com/v2/push")
    with pytest.raises(ConfigurationError):
        OmetriaClient(api_key="om-key", endpoint="")


def test_push_contacts_sends_one_batch(ometria):
    session = RecordingSession(FakeResponse(status_code=201))
    ometria.session.post = session

    ometria.push_contacts(contacts())

    (url,), kwargs = session.calls[0]
    assert url == "https://api.ometria.com/v2/push"
    assert kwargs["json"] == [{
        "id": "m1",
        "firstname": "Jane",
        "lastname": "Public",
        "email": "jane@example.com",
        "status": "subscribed",
    }]
    assert ometria.session.headers["Authorization"] == "om-key"


@pytest.mark.parametrize("status_code", [200, 202, 400, 500])
def test_push_contacts_only_accepts_created(ometria, status_code):
    ometria.session.post = RecordingSession(FakeResponse(status_code=status_code, text="nope"))

    with pytest.raises(OmetriaAPIError) as exc_info:
        ometria.push_contacts(contacts())

    assert exc_info.value.status_code == status_code


def test_push_contacts_network_error(ometria):
    ometria.session.post = RecordingSession(error=requests.exceptions.Timeout("timed out"))

    with pytest.raises(OmetriaAPIError, match="Request failed"):
        ometria.push_contacts(contacts())
