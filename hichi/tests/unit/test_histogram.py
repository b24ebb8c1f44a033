"""
Unit tests for the histogram store.

Tests booking idempotence, filling (including unbooked pairs and
under/overflow) and the drawing modes.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pytest

from hichi.modules.histogram import EnergyText, Hist1D, HistogramStore, Palette, VarInfo

CHIC = VarInfo("X_{C} Mass (GeV/c^{2})", 100, 3.0, 4.0)
CHIB = VarInfo("X_{B} Mass (GeV/c^{2})", 100, 9.0, 12.0)


@pytest.mark.unit
class TestHist1D:
    """Test the bin layout."""

    @pytest.mark.parametrize("value, expected", [
        (2.99, 0),
        (3.0, 1),
        (3.005, 1),
        (3.515, 52),
        (3.999, 100),
        (4.0, 101),
        (np.inf, 101),
        (-np.inf, 0),
    ])
    def test_find_bin(self, value: float, expected: int) -> None:
        assert Hist1D("h", CHIC).find_bin(value) == expected

    def test_edges(self) -> None:
        hist = Hist1D("h", VarInfo("x", 4, 0.0, 2.0))
        np.testing.assert_allclose(hist.edges, [0.0, 0.5, 1.0, 1.5, 2.0])

    def test_under_and_overflow(self) -> None:
        hist = Hist1D("h", CHIC)
        hist.fill(0.0)
        hist.fill(5.0)
        hist.fill(5.0)
        assert hist.underflow == 1
        assert hist.overflow == 2
        assert hist.values.sum() == 0
        assert hist.entries == 3


@pytest.mark.unit
class TestBook:
    """Test booking."""

    def test_book_creates_histograms(self, histogram_store: HistogramStore) -> None:
        histogram_store.book("DATA_PA", {"ChiC_M": CHIC, "ChiB_M": CHIB})
        assert len(histogram_store) == 2
        assert ("DATA_PA", "ChiC_M") in histogram_store
        assert histogram_store.get("DATA_PA", "ChiC_M").name == "h_DATA_PA_ChiC_M"

    def test_book_is_idempotent(self, histogram_store: HistogramStore) -> None:
        histogram_store.book("DATA_PA", {"ChiC_M": CHIC})
        original = histogram_store.get("DATA_PA", "ChiC_M")
        original.fill(3.5)

        histogram_store.book("DATA_PA", {"ChiC_M": VarInfo("other", 10, 0.0, 1.0)})

        assert len(histogram_store) == 1
        hist = histogram_store.get("DATA_PA", "ChiC_M")
        assert hist is original
        assert hist.info == CHIC
        assert hist.entries == 1

    def test_book_logs_new_histograms_only(self, histogram_store: HistogramStore,
                                           caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="HiChi.HistogramStore"):
            histogram_store.book("DATA_PA", {"ChiC_M": CHIC})
            histogram_store.book("DATA_PA", {"ChiC_M": CHIC, "ChiB_M": CHIB})
        messages = [r.getMessage() for r in caplog.records]
        assert messages == [
            "Added histogram: h_DATA_PA_ChiC_M",
            "Added histogram: h_DATA_PA_ChiB_M",
        ]


@pytest.mark.unit
class TestFill:
    """Test filling."""

    def test_fill_booked(self, histogram_store: HistogramStore) -> None:
        histogram_store.book("DATA_PA", {"ChiC_M": CHIC})
        histogram_store.fill("DATA_PA", {"ChiC_M": 3.515})
        hist = histogram_store.get("DATA_PA", "ChiC_M")
        assert hist.values[51] == 1
        assert hist.entries == 1

    def test_fill_unbooked_changes_nothing(self, histogram_store: HistogramStore) -> None:
        histogram_store.book("DATA_PA", {"ChiC_M": CHIC})
        before = histogram_store.get("DATA_PA", "ChiC_M").counts.copy()

        histogram_store.fill("DATA_PA", {"ChiB_M": 9.5})
        histogram_store.fill("MC_PA", {"ChiC_M": 3.5})

        np.testing.assert_array_equal(histogram_store.get("DATA_PA", "ChiC_M").counts, before)
        assert histogram_store.get("DATA_PA", "ChiB_M") is None
        assert histogram_store.categories() == ["DATA_PA"]

    def test_dispose(self, histogram_store: HistogramStore) -> None:
        histogram_store.book("DATA_PA", {"ChiC_M": CHIC})
        histogram_store.dispose()
        assert len(histogram_store) == 0


@pytest.mark.unit
class TestRender:
    """Test the drawing modes."""

    @pytest.fixture
    def booked(self, histogram_store: HistogramStore) -> HistogramStore:
        for category in ("DATA_pPb", "DATA_Pbp"):
            histogram_store.book(category, {"ChiC_M": CHIC, "ChiB_M": CHIB})
        histogram_store.fill("DATA_pPb", {"ChiC_M": 3.5, "ChiB_M": 9.9})
        histogram_store.fill("DATA_Pbp", {"ChiC_M": 3.4})
        return histogram_store

    def test_separate_one_image_per_histogram(self, booked: HistogramStore,
                                              tmp_output_dir: Path) -> None:
        written = booked.render("separate")
        assert len(written) == len(booked) == 4
        assert sorted(p.name for p in tmp_output_dir.iterdir()) == [
            "c_DATA_Pbp_ChiB_M.png",
            "c_DATA_Pbp_ChiC_M.png",
            "c_DATA_pPb_ChiB_M.png",
            "c_DATA_pPb_ChiC_M.png",
        ]

    def test_empty_tag_draws_nothing(self, booked: HistogramStore,
                                     tmp_output_dir: Path) -> None:
        assert booked.render("") == []
        assert list(tmp_output_dir.iterdir()) == []

    def test_together(self, booked: HistogramStore, tmp_output_dir: Path) -> None:
        written = booked.render("together")
        assert [p.name for p in written] == ["c_JOIN.png"]
        assert (tmp_output_dir / "c_JOIN.png").stat().st_size > 0

    def test_tagged_overlay(self, booked: HistogramStore, tmp_output_dir: Path) -> None:
        written = booked.render("pPb", palette=Palette(colors=("black",), markers=("o",),
                                                        filled=(True,)))
        assert [p.name for p in written] == ["c_pPb.png"]

    def test_unknown_tag(self, booked: HistogramStore, tmp_output_dir: Path) -> None:
        assert booked.render("PbPb") == []
        assert list(tmp_output_dir.iterdir()) == []

    def test_output_dir_created(self, tmp_test_dir: Path) -> None:
        store = HistogramStore(output_dir=str(tmp_test_dir / "new" / "Plots"))
        store.book("DATA_PA", {"ChiC_M": CHIC})
        store.render("separate")
        assert (tmp_test_dir / "new" / "Plots" / "c_DATA_PA_ChiC_M.png").exists()
        store.dispose()

    @pytest.mark.parametrize("label, tag, expected", [
        ("DATA_pPb_ChiC_M", "pPb", "DATA_ChiC_M"),
        ("DATA_pPb_ChiC_M", "DATA", "pPb_ChiC_M"),
        ("DATA_pPb_ChiC_M", "together", "DATA_pPb_ChiC_M"),
        ("MCpPb_ChiC_M", "MC", "pPb_ChiC_M"),
    ])
    def test_legend_label(self, label: str, tag: str, expected: str) -> None:
        assert HistogramStore._legend_label(label, tag) == expected


@pytest.mark.unit
class TestStyle:
    """Test palette cycling and label texts."""

    def test_palette_cycles(self) -> None:
        palette = Palette()
        assert palette.style(len(palette.colors)) == palette.style(0)
        assert palette.style(0)["color"] == "red"
        assert palette.style(2)["markerfacecolor"] == "none"

    def test_energy_text(self) -> None:
        text = EnergyText()
        assert text("DATA_pPb") == "pPb (8.16 TeV)"
        assert text("DATA_Pbp") == "Pbp (8.16 TeV)"
        assert text("DATA_PA") == "pPb + Pbp (8.16 TeV)"
