"""Tests for command line argument handling."""
import math

import pytest

from run_generation_labeling import parse_args


class TestParseArgs:

    def test_defaults(self):
        args = parse_args(["-i", "in.vtk", "-o", "out.vtk", "-a", "atlas.vtk"])
        assert args.in_particles == "in.vtk"
        assert args.atlases == ["atlas.vtk"]
        assert args.dist_thresh == 2.0
        assert math.isinf(args.kde_roi)
        assert not args.dice
        assert args.emission_stats is None

    def test_multiple_atlases_and_files(self):
        args = parse_args(["-i", "in.vtk", "-o", "out.vtk", "-a", "a1.vtk", "-a", "a2.vtk",
                           "-e", "emission.csv", "--tp", "tp.csv", "--tps", "tps.csv",
                           "-d", "3.5", "--kde-roi", "20", "--dice"])
        assert args.atlases == ["a1.vtk", "a2.vtk"]
        assert args.transition_probabilities == "tp.csv"
        assert args.transition_stats == "tps.csv"
        assert args.dist_thresh == 3.5
        assert args.kde_roi == 20.0
        assert args.dice

    def test_atlas_required(self):
        with pytest.raises(SystemExit):
            parse_args(["-i", "in.vtk", "-o", "out.vtk"])
