"""
Tests for the run artifact.
"""

import json
from datetime import datetime, timezone

from dealer_scrapers.base import (
    DealershipScrapeResult,
    ErrorScope,
    GroupSummary,
    RunError,
    RunSummary,
    TechnologyGroup,
    VehicleListingCandidate,
)
from dealer_scrapers.sinks import JsonArtifactWriter
from dealer_scrapers.utils.normalizers import normalize_candidate

STARTED = datetime(2024, 5, 3, 14, 30, 5, tzinfo=timezone.utc)


def results():
    candidate = VehicleListingCandidate(
        dealer_name='Dealer A',
        source_url='https://dealer-a.test/auto/1/',
        raw_title='Peugeot 208 Feline 2021',
        raw_price_text='$ 21.500.000',
    )
    ok = DealershipScrapeResult(
        dealer_name='Dealer A',
        source_url='https://dealer-a.test/usados/',
        technology_group=TechnologyGroup.TEMPLATE_CMS,
        records=[normalize_candidate(candidate)],
        candidates_found=1,
        started_at=STARTED,
        completed_at=STARTED,
    )
    failed = DealershipScrapeResult(
        dealer_name='Dealer B',
        source_url='https://dealer-b.test/',
        technology_group=TechnologyGroup.TEMPLATE_CMS,
        errors=['HTTP 503'],
        started_at=STARTED,
        completed_at=STARTED,
    )
    return {TechnologyGroup.TEMPLATE_CMS: [ok, failed], TechnologyGroup.SPECIAL: []}


def summary(by_group):
    return RunSummary(
        started_at=STARTED,
        completed_at=STARTED,
        total_dealers=2,
        total_records=1,
        successful_dealers=1,
        failed_dealers=1,
        group_summaries={g: GroupSummary.from_results(g, r) for g, r in by_group.items()},
        errors=(RunError(ErrorScope.DEALER, 'HTTP 503', TechnologyGroup.TEMPLATE_CMS, 'Dealer B'),),
    )


class TestJsonArtifactWriter:

    def test_document_shape(self):
        by_group = results()
        document = JsonArtifactWriter('unused').build(summary(by_group), by_group)

        assert list(document) == ['summary', 'groups']
        assert list(document['groups']) == ['template-cms', 'special']
        assert document['groups']['special'] == []
        assert document['summary']['success_rate'] == 50.0
        assert document['summary']['errors'][0]['type'] == 'dealer'

    def test_write_and_load(self, tmp_path):
        by_group = results()
        writer = JsonArtifactWriter(tmp_path / 'results')

        path = writer.write(summary(by_group), by_group)

        assert path.name == 'run-20240503T143005Z.json'
        document = json.loads(path.read_text(encoding='utf-8'))
        dealers = document['groups']['template-cms']
        assert [d['dealer_name'] for d in dealers] == ['Dealer A', 'Dealer B']
        assert dealers[0]['records'][0]['price_amount'] == 21500000
        assert dealers[0]['records'][0]['year'] == 2021
        assert dealers[1]['success'] is False
        assert document['summary']['group_summaries']['template-cms']['dealers_failed'] == 1
