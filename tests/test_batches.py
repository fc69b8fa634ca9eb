from __future__ import annotations

import pytest

from salesgrader.pipeline.batches import GradingBatch, split_into_batches
from salesgrader.transcripts.normalize import normalize_transcript


@pytest.mark.parametrize("batch_size", [1, 2, 3, 5, 10, 11, 50])
def test_batches_cover_every_turn_once_in_order(sample_records, batch_size: int) -> None:
    transcript = normalize_transcript(sample_records)

    batches = split_into_batches(transcript, batch_size)

    assert [batch.batch_index for batch in batches] == list(range(len(batches)))
    assert tuple(turn for batch in batches for turn in batch.lines) == transcript
    assert all(len(batch.lines) == batch_size for batch in batches[:-1])
    assert 0 < len(batches[-1].lines) <= batch_size


def test_batches_track_offsets_and_context(sample_records) -> None:
    transcript = normalize_transcript(sample_records)

    batches = split_into_batches(transcript, 5)

    assert [len(batch.lines) for batch in batches] == [5, 5, 1]
    assert [batch.start_line for batch in batches] == [0, 5, 10]
    assert batches[0].context is None
    assert batches[1].context == transcript[4]
    assert batches[2].context == transcript[9]
    assert all(batch.batch_size == 5 for batch in batches)


def test_split_is_stable(sample_records) -> None:
    transcript = normalize_transcript(sample_records)

    assert split_into_batches(transcript, 4) == split_into_batches(list(transcript), 4)


def test_empty_transcript_has_no_batches() -> None:
    assert split_into_batches((), 5) == []


@pytest.mark.parametrize("batch_size", [0, -3])
def test_non_positive_batch_size_is_rejected(batch_size: int) -> None:
    with pytest.raises(ValueError):
        split_into_batches((), batch_size)


def test_batch_payload_round_trips_through_job_payload(sample_records) -> None:
    batch = split_into_batches(normalize_transcript(sample_records), 5)[1]

    assert GradingBatch.from_dict(batch.as_dict()) == batch
