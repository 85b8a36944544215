"""
Tests for the Command Line Entry Point and Timing Utilities

Test Categories:
1. Data generation and filling through main()
2. Argument validation and exit status
3. Benchmark mode
4. Timer and BenchmarkResult

Run with: pytest tests/test_main.py -v
"""

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from nearest_tz.main import main, build_parser
from nearest_tz.tzfill.record_io import read_lines
from nearest_tz.synthetic_data import save_dataset
from nearest_tz.perf.timing import (
    Timer,
    compute_speedup,
    BenchmarkResult,
    benchmark_function
)


class TestFillCommand:
    """Tests for --generate-data and --input modes."""

    def test_generate_then_fill(self, tmp_path):
        data = tmp_path / "locations.csv.gz"
        assert main(["--generate-data", "--output", str(data),
                     "--num-reference", "200", "--num-queries", "40", "-q"]) == 0
        assert len(read_lines(data)) == 240

        assert main(["--input", str(data), "--threshold", "500",
                     "--workers", "3", "-q"]) == 0
        outputs = sorted(tmp_path.glob("output_*"))
        assert [p.name for p in outputs] == ["output_0", "output_1", "output_2"]

        filled = [line for p in outputs for line in read_lines(p)]
        assert len(filled) == 240
        assert not any(line.endswith(",null") for line in filled)

    def test_fill_to_output_dir_and_print_tree(self, tmp_path, capsys):
        data = tmp_path / "locations.csv"
        save_dataset(["52.52,13.405,Europe/Berlin", "50.0,5.0,null"], data)

        status = main(["--input", str(data), "--threshold", "1000", "--workers", "1",
                       "--output-dir", str(tmp_path / "out"), "--print-tree"])
        assert status == 0
        assert read_lines(tmp_path / "out" / "output_0") == [
            "52.52,13.405,Europe/Berlin", "50.0,5.0,Europe/Berlin"
        ]

        out = capsys.readouterr().out
        assert "└── " in out
        assert "TIMEZONE FILL REPORT" in out

    def test_custom_undefined_token(self, tmp_path):
        data = tmp_path / "locations.csv"
        save_dataset(["48.85,2.35,Europe/Paris", "48.9,2.4,NA"], data)
        assert main(["--input", str(data), "--threshold", "100", "--workers", "1",
                     "--undefined-token", "NA", "-q"]) == 0
        assert read_lines(tmp_path / "output_0")[1] == "48.9,2.4,Europe/Paris"


class TestArgumentValidation:
    """Tests for exit status on bad arguments."""

    def test_threshold_required(self, tmp_path, capsys):
        assert main(["--input", str(tmp_path / "any.csv"), "-q"]) == 1
        assert "--threshold" in capsys.readouterr().err

    def test_threshold_must_be_positive(self, tmp_path):
        assert main(["--input", str(tmp_path / "any.csv"), "--threshold", "0", "-q"]) == 1

    def test_workers_must_be_positive(self, tmp_path):
        assert main(["--input", str(tmp_path / "any.csv"), "--threshold", "10",
                     "--workers", "0", "-q"]) == 1

    def test_missing_input_file(self, tmp_path, capsys):
        assert main(["--input", str(tmp_path / "missing.csv"), "--threshold", "10", "-q"]) == 1
        assert "error" in capsys.readouterr().err

    def test_input_not_utf8(self, tmp_path, capsys):
        data = tmp_path / "locations.csv"
        data.write_bytes(b"\xff\xfe,1\n")
        assert main(["--input", str(data), "--threshold", "400", "-q"]) == 1
        assert "error" in capsys.readouterr().err

    def test_truncated_gzip_input(self, tmp_path, capsys):
        full = tmp_path / "full.csv.gz"
        save_dataset(["52.52,13.405,Europe/Berlin"] * 200, full)
        truncated = tmp_path / "truncated.csv.gz"
        truncated.write_bytes(full.read_bytes()[:-12])
        assert main(["--input", str(truncated), "--threshold", "400", "-q"]) == 1
        assert "error" in capsys.readouterr().err

    def test_unwritable_generation_output(self, tmp_path, capsys):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        assert main(["--generate-data", "--output", str(blocker / "data.csv"),
                     "--num-reference", "5", "--num-queries", "1", "-q"]) == 1
        assert "error" in capsys.readouterr().err

    @pytest.mark.parametrize("sizes", ["abc", "100,,200", "0", "-5"])
    def test_malformed_benchmark_sizes(self, sizes, capsys):
        assert main(["--benchmark", "--sizes", sizes, "-q"]) == 1
        assert "--sizes" in capsys.readouterr().err

    def test_unwritable_benchmark_output(self, tmp_path, capsys):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        assert main(["--benchmark", "--sizes", "20", "--trials", "1", "--num-queries", "2",
                     "--save-benchmark", "--benchmark-output", str(blocker / "bench.csv"),
                     "-q"]) == 1
        assert "error" in capsys.readouterr().err

    def test_output_required_for_generation(self):
        assert main(["--generate-data", "-q"]) == 1

    def test_modes_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--benchmark", "--generate-data"])

    def test_mode_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestBenchmarkCommand:
    """Smoke tests for --benchmark."""

    def test_benchmark_runs(self, capsys):
        assert main(["--benchmark", "--sizes", "50", "--trials", "1",
                     "--num-queries", "5"]) == 0
        assert "BENCHMARK SUMMARY" in capsys.readouterr().out

    def test_benchmark_saves_csv(self, tmp_path):
        output = tmp_path / "results" / "bench.csv"
        assert main(["--benchmark", "--sizes", "30,60", "--trials", "1",
                     "--num-queries", "3", "--save-benchmark",
                     "--benchmark-output", str(output), "-q"]) == 0
        rows = read_lines(output)
        assert rows[0].startswith("num_points,")
        assert len(rows) == 3


class TestTiming:
    """Tests for timing utilities."""

    def test_timer_measures(self):
        with Timer(verbose=False) as t:
            sum(range(1000))
        assert t.elapsed >= 0
        assert t.elapsed_ms == t.elapsed * 1000

    def test_named_timer_prints(self, capsys):
        with Timer("Stage"):
            pass
        assert capsys.readouterr().out.startswith("Stage: ")

    def test_compute_speedup(self):
        assert compute_speedup(10.0, 2.0) == 5.0
        assert compute_speedup(10.0, 0.0) == float('inf')

    def test_benchmark_result_statistics(self):
        result = BenchmarkResult("op", times_ms=[1.0, 2.0, 3.0])
        assert result.mean_ms == 2.0
        assert result.std_ms == 1.0
        assert result.min_ms == 1.0
        assert result.max_ms == 3.0
        assert result.to_dict()['num_trials'] == 3
        assert "op" in result.summary()

    def test_empty_result(self):
        result = BenchmarkResult("empty")
        assert result.mean_ms == 0.0
        assert result.std_ms == 0.0

    def test_benchmark_function_counts_calls(self):
        calls = []
        result = benchmark_function(calls.append, args=(1,), n_trials=4, warmup=2)
        assert len(calls) == 6
        assert result.num_trials == 4
        assert result.name == "append"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
