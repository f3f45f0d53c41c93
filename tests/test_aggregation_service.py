"""
tests/test_aggregation_service.py

National averages, rankings, comparisons and trends over active facts.
"""

from __future__ import annotations

import pytest

from db.repositories.data_point_repository import DataPointRepository, FactCreate
from db.repositories.national_average_repository import NationalAverageRepository
from stateimport.config import AggregationSettings
from stateimport.services.aggregation_service import (
    AggregationNotFoundError,
    AggregationService,
    AggregationValidationError,
    competition_rank,
    percentile_rank,
)
from stateimport.services.cache import TTLCache


def seed_facts(db, facts: dict[tuple[int, int, int], float], *, active: bool = True) -> int:
    """Insert ``{(state_id, statistic_id, year): value}`` on a new import session."""
    repository = DataPointRepository(db)
    import_session = repository.create_session(name="seed", created_by=1)
    repository.insert_facts(
        [
            FactCreate(
                import_session_id=import_session.id,
                state_id=state_id,
                statistic_id=statistic_id,
                year=year,
                value=value,
            )
            for (state_id, statistic_id, year), value in facts.items()
        ],
        batch_size=100,
    )
    if not active:
        repository.deactivate_session(import_session.id)
    db.commit()
    return import_session.id


@pytest.fixture()
def service(db, cache, aggregation_settings) -> AggregationService:
    return AggregationService(db, cache=cache, settings=aggregation_settings)


@pytest.fixture()
def gdp_2023(db, catalog) -> None:
    seed_facts(
        db,
        {
            (catalog.california, catalog.gdp, 2023): 30.0,
            (catalog.texas, catalog.gdp, 2023): 20.0,
            (catalog.new_york, catalog.gdp, 2023): 10.0,
        },
    )


class TestRankingHelpers:
    def test_percentile_rank(self) -> None:
        assert percentile_rank(1, 3) == 100.0
        assert percentile_rank(2, 3) == 66.67
        assert percentile_rank(3, 3) == 33.33
        assert percentile_rank(1, 1) == 100.0

    def test_percentile_rank_rejects_empty_population(self) -> None:
        with pytest.raises(AggregationValidationError):
            percentile_rank(1, 0)

    def test_competition_rank_shares_ties(self) -> None:
        values = [30.0, 30.0, 10.0]
        assert competition_rank(30.0, values) == 1
        assert competition_rank(10.0, values) == 3


# ---------------------------------------------------------------------------
# National averages
# ---------------------------------------------------------------------------


class TestNationalAverage:
    def test_arithmetic_mean_of_active_facts(self, db, catalog, service, gdp_2023) -> None:
        result = service.national_average(catalog.gdp, 2023)

        assert result.value == 20.0
        assert result.state_count == 3
        assert result.calculation_method == "arithmetic_mean"

        stored = NationalAverageRepository(db).get(statistic_id=catalog.gdp, year=2023)
        assert stored is not None
        assert stored.value == 20.0

    def test_inactive_sessions_are_ignored(self, db, catalog, service, gdp_2023) -> None:
        seed_facts(db, {(catalog.nation, catalog.gdp, 2023): 1000.0}, active=False)

        assert service.national_average(catalog.gdp, 2023).state_count == 3

    def test_cache_then_persisted_row(self, db, catalog, cache, service, gdp_2023) -> None:
        service.national_average(catalog.gdp, 2023)
        NationalAverageRepository(db).save(statistic_id=catalog.gdp, year=2023, value=99.0, state_count=3)
        db.commit()

        assert service.national_average(catalog.gdp, 2023).value == 20.0

        cache.clear()
        assert service.national_average(catalog.gdp, 2023).value == 99.0

    def test_works_with_caching_disabled(self, db, catalog, aggregation_settings, gdp_2023) -> None:
        service = AggregationService(db, cache=TTLCache(ttl_seconds=0), settings=aggregation_settings)

        assert service.national_average(catalog.gdp, 2023).value == 20.0
        assert service.national_average(catalog.gdp, 2023).value == 20.0

    def test_no_data_raises_not_found(self, catalog, service) -> None:
        with pytest.raises(AggregationNotFoundError):
            service.national_average(catalog.gdp, 1999)

    def test_recompute_overwrites_stored_rows(self, db, catalog, service, gdp_2023) -> None:
        service.national_average(catalog.gdp, 2023)
        seed_facts(db, {(catalog.nation, catalog.gdp, 2023): 40.0})

        summary = service.recompute_national_averages(2023)

        assert summary.recomputed == [catalog.gdp]
        assert summary.failed == []
        assert service.national_average(catalog.gdp, 2023).value == 25.0


# ---------------------------------------------------------------------------
# Rankings and comparisons
# ---------------------------------------------------------------------------


class TestPerformers:
    def test_descending_with_state_id_tie_break(self, db, catalog, service) -> None:
        seed_facts(
            db,
            {
                (catalog.texas, catalog.gdp, 2023): 30.0,
                (catalog.california, catalog.gdp, 2023): 30.0,
                (catalog.new_york, catalog.gdp, 2023): 10.0,
            },
        )

        result = service.top_bottom_performers(catalog.gdp, 2023)

        assert [entry.state_id for entry in result.performers] == [
            catalog.california,
            catalog.texas,
            catalog.new_york,
        ]
        assert [entry.rank for entry in result.performers] == [1, 2, 3]
        assert result.performers[0].state_name == "California"
        assert result.unit == "USD"

    def test_ascending_with_limit(self, catalog, service, gdp_2023) -> None:
        result = service.top_bottom_performers(catalog.gdp, 2023, limit=2, order="asc")

        assert [entry.value for entry in result.performers] == [10.0, 20.0]
        assert result.order == "asc"

    def test_default_limit_comes_from_settings(self, db, catalog, cache, gdp_2023) -> None:
        settings = AggregationSettings(default_performer_limit=1)
        service = AggregationService(db, cache=cache, settings=settings)

        assert len(service.top_bottom_performers(catalog.gdp, 2023).performers) == 1

    @pytest.mark.parametrize(("kwargs"), [{"order": "sideways"}, {"limit": 0}])
    def test_invalid_parameters(self, catalog, service, kwargs) -> None:
        with pytest.raises(AggregationValidationError):
            service.top_bottom_performers(catalog.gdp, 2023, **kwargs)

    def test_unknown_statistic(self, service) -> None:
        with pytest.raises(AggregationNotFoundError):
            service.top_bottom_performers(4242, 2023)


class TestComparisons:
    def test_state_comparison_percentiles(self, db, catalog, service, gdp_2023) -> None:
        seed_facts(
            db,
            {
                (catalog.texas, catalog.graduation_rate, 2023): 90.0,
                (catalog.california, catalog.graduation_rate, 2023): 90.0,
            },
        )

        result = service.state_comparison(catalog.texas, 2023)

        assert result.state_name == "Texas"
        by_statistic = {entry.statistic_id: entry for entry in result.statistics}
        gdp = by_statistic[catalog.gdp]
        assert gdp.rank == 2
        assert gdp.total_states == 3
        assert gdp.percentile == 66.67
        graduation = by_statistic[catalog.graduation_rate]
        assert graduation.rank == 1
        assert graduation.percentile == 100.0

    def test_state_comparison_unknown_state(self, service) -> None:
        with pytest.raises(AggregationNotFoundError):
            service.state_comparison(4242, 2023)

    def test_state_without_data_has_no_entries(self, catalog, service, gdp_2023) -> None:
        assert service.state_comparison(catalog.nation, 2023).statistics == []

    def test_statistic_comparison(self, catalog, service, gdp_2023) -> None:
        result = service.statistic_comparison(catalog.gdp, 2023)

        assert result.average == 20.0
        assert result.median == 20.0
        assert result.minimum == 10.0
        assert result.maximum == 30.0
        assert result.state_count == 3
        assert result.statistic_name == "GDP"


class TestTrends:
    def test_year_over_year_changes(self, db, catalog, service) -> None:
        seed_facts(
            db,
            {
                (catalog.california, catalog.gdp, 2022): 110.0,
                (catalog.california, catalog.gdp, 2020): 100.0,
                (catalog.california, catalog.gdp, 2023): 99.0,
            },
        )

        result = service.trend_data(catalog.gdp, catalog.california)

        assert [point.year for point in result.trends] == [2020, 2022, 2023]
        assert [point.change for point in result.trends] == [0.0, 10.0, -11.0]
        assert [point.change_percent for point in result.trends] == [0.0, 10.0, -10.0]

    def test_change_from_zero_has_zero_percent(self, db, catalog, service) -> None:
        seed_facts(
            db,
            {
                (catalog.texas, catalog.gdp, 2020): 0.0,
                (catalog.texas, catalog.gdp, 2021): 5.0,
            },
        )

        result = service.trend_data(catalog.gdp, catalog.texas)

        assert result.trends[1].change == 5.0
        assert result.trends[1].change_percent == 0.0

    def test_no_series_raises(self, catalog, service) -> None:
        with pytest.raises(AggregationNotFoundError):
            service.trend_data(catalog.gdp, catalog.texas)
