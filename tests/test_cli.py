import json

import pytest

from newsletter_studio.infrastructure.error_handling import ValidationError
from newsletter_studio.main import NewsletterCLI, create_parser, load_draft_file, run_command
from newsletter_studio.models.email import BulkSendResult


def test_load_draft_file_accepts_both_shapes(tmp_path, draft_payload) -> None:
    bare = tmp_path / "bare.json"
    bare.write_text(json.dumps(draft_payload))
    wrapped = tmp_path / "wrapped.json"
    wrapped.write_text(json.dumps({"newsletterData": draft_payload, "aiStyles": {"card": "bg-red-500"}}))

    bare_draft, bare_styles = load_draft_file(bare)
    wrapped_draft, wrapped_styles = load_draft_file(wrapped)

    assert bare_draft == wrapped_draft
    assert bare_styles.is_empty
    assert wrapped_styles.card == "bg-red-500"


def test_load_draft_file_rejects_invalid_json(tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{")

    with pytest.raises(ValidationError):
        load_draft_file(path)


async def test_render_command_writes_html(tmp_path, config, draft_payload) -> None:
    draft_path = tmp_path / "draft.json"
    draft_path.write_text(json.dumps(draft_payload))
    output = tmp_path / "out.html"
    args = create_parser().parse_args(["render", str(draft_path), "-o", str(output)])

    assert await run_command(args, config) == 0
    assert "Rockets, revisited" in output.read_text()


async def test_drafts_show_unknown_id(config) -> None:
    args = create_parser().parse_args(["drafts", "show", "missing"])

    assert await run_command(args, config) == 1


class StubStudio:
    def __init__(self, result: BulkSendResult):
        self.result = result
        self.sent = []

    async def send_bulk(self, draft, styles) -> BulkSendResult:
        self.sent.append(draft)
        return self.result

    async def close(self) -> None:
        pass


@pytest.mark.parametrize(
    "result, expected",
    [
        (BulkSendResult(sent_count=3), True),
        (BulkSendResult(sent_count=2, failed_count=1, failed_emails=["c@example.com"]), False),
        (BulkSendResult(failed_count=3, failed_emails=["a@example.com", "b@example.com", "c@example.com"]), False),
    ],
)
async def test_send_bulk_succeeds_only_without_failures(tmp_path, config, draft_payload, result, expected) -> None:
    draft_path = tmp_path / "draft.json"
    draft_path.write_text(json.dumps(draft_payload))
    cli = NewsletterCLI(config)
    cli.studio = StubStudio(result)

    assert await cli.send_bulk(draft_path) is expected
    assert len(cli.studio.sent) == 1
