import logging

import pytest
from pypdf import PdfReader

from batch_generator import BatchResult, main, run_batch
from certificate_errors import OutputDirectoryError, SourceIOError, TemplateNotFoundError


def test_every_row_is_counted_once(write_csv, make_config, log):
    path = write_csv([["name", "date"], ["Ada", "2024"], ["", "2024"], ["Alan", ""], ["Grace", "1906"]])
    config = make_config(path)

    result = run_batch(config, log)

    assert isinstance(result, BatchResult)
    assert result.total_recipients == 4
    assert result.processed == 3
    assert result.processed + len(result.errors) == result.total_recipients
    assert not result.succeeded
    assert sorted(p.name for p in config.output_dir.iterdir()) == [
        "Certificate_ada.pdf",
        "Certificate_alan.pdf",
        "Certificate_grace.pdf",
    ]


def test_missing_name_lands_in_errors(write_csv, make_config, log):
    path = write_csv([["name", "date"], ["", "2024-01-01"]])
    config = make_config(path)

    result = run_batch(config, log)

    assert result.processed == 0
    assert len(result.errors) == 1
    assert result.errors[0].error == "Missing name field"
    assert result.errors[0].recipient["date"] == "2024-01-01"
    assert list(config.output_dir.iterdir()) == []


def test_name_column_absent_is_a_record_error(write_csv, make_config, log):
    path = write_csv([["full_name"], ["Ada"]])
    result = run_batch(make_config(path), log)
    assert result.total_recipients == 1
    assert [e.error for e in result.errors] == ["Missing name field"]


def test_failures_are_summarised_as_warnings(write_csv, make_config, log, caplog):
    path = write_csv([["name", "date"], ["", "2024"]])
    with caplog.at_level(logging.INFO, logger=log.name):
        run_batch(make_config(path), log)

    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert warnings == ["Some certificates could not be generated:", "- Unknown: Missing name field"]
    assert "Found 1 recipients in CSV file" in caplog.text


def test_colliding_names_overwrite(write_csv, make_config, log):
    path = write_csv([["name"], ["Jo!"], ["Jo?"]])
    config = make_config(path)

    result = run_batch(config, log)

    assert result.processed == 2
    files = list(config.output_dir.iterdir())
    assert [f.name for f in files] == ["Certificate_jo_.pdf"]
    assert "Jo?" in PdfReader(str(files[0])).pages[0].extract_text()


def test_rerun_leaves_same_output(write_csv, make_config, log):
    path = write_csv([["name", "date"], ["Ada", "2024"], ["Alan", "2025"]])
    config = make_config(path)

    run_batch(config, log)
    first = {p.name: p.read_bytes() for p in config.output_dir.iterdir()}
    run_batch(config, log)
    second = {p.name: p.read_bytes() for p in config.output_dir.iterdir()}

    assert sorted(first) == ["Certificate_ada.pdf", "Certificate_alan.pdf"]
    assert first == second


def test_output_directory_is_created(write_csv, make_config, tmp_path, log):
    path = write_csv([["name"], ["Ada"]])
    config = make_config(path, output_dir=tmp_path / "nested" / "certs")
    run_batch(config, log)
    assert (tmp_path / "nested" / "certs" / "Certificate_ada.pdf").exists()


def test_corrupt_template_fails_each_record(write_csv, make_config, tmp_path, log):
    broken = tmp_path / "broken.pdf"
    broken.write_bytes(b"this is not a pdf")
    path = write_csv([["name"], ["Ada"], ["Alan"]])

    result = run_batch(make_config(path, template_path=broken), log)

    assert result.processed == 0
    assert len(result.errors) == 2


def test_missing_template_is_fatal(write_csv, make_config, tmp_path, log):
    path = write_csv([["name"], ["Ada"]])
    config = make_config(path, template_path=tmp_path / "missing.pdf")

    with pytest.raises(TemplateNotFoundError):
        run_batch(config, log)
    assert not config.output_dir.exists()


def test_missing_csv_is_fatal(make_config, tmp_path, log):
    with pytest.raises(SourceIOError):
        run_batch(make_config(tmp_path / "missing.csv"), log)


def _cli_args(config):
    return [
        "--template", str(config.template_path),
        "--csv", str(config.csv_path),
        "--output-dir", str(config.output_dir),
        "--log-file", str(config.logging.log_file_path),
    ]


def test_main_succeeds_with_partial_errors(write_csv, make_config, capsys):
    path = write_csv([["name", "date"], ["Ada", "2024"], ["", "2024"]])
    config = make_config(path)
    config.logging.log_file_path.write_text("stale line from a previous run\n")

    assert main(_cli_args(config), env={}) == 0

    log_text = config.logging.log_file_path.read_text()
    assert "stale line" not in log_text
    assert "[INFO] Successfully processed: 1" in log_text
    assert "[WARNING] - Unknown: Missing name field" in log_text
    assert "[INFO] Errors: 1" in capsys.readouterr().out


def test_main_exits_non_zero_on_missing_template(write_csv, make_config, tmp_path):
    path = write_csv([["name"], ["Ada"]])
    config = make_config(path, template_path=tmp_path / "missing.pdf")

    assert main(_cli_args(config), env={}) == 1

    assert "[ERROR] Certificate generation failed: Template file not found" in (
        config.logging.log_file_path.read_text()
    )
    assert not config.output_dir.exists()


def test_main_reads_environment(write_csv, make_config, tmp_path):
    path = write_csv([["name"], ["Ada"]], delimiter=";")
    config = make_config(path)
    env = {
        "CERT_TEMPLATE_PATH": str(config.template_path),
        "CERT_CSV_PATH": str(path),
        "CERT_CSV_DELIMITER": ";",
        "CERT_OUTPUT_DIR": str(config.output_dir),
        "CERT_LOG_TO_FILE": "false",
    }

    assert main([], env=env) == 0
    assert (config.output_dir / "Certificate_ada.pdf").exists()


def test_main_rejects_bad_delimiter(write_csv, make_config):
    config = make_config(write_csv([["name"], ["Ada"]]))
    assert main(_cli_args(config) + ["--delimiter", ";;"], env={}) == 2


def test_unencodable_name_lands_in_errors(write_csv, make_config, log):
    path = write_csv([["name"], ["李小龙"], ["Ada"]])
    config = make_config(path)

    result = run_batch(config, log)

    assert result.processed == 1
    assert len(result.errors) == 1
    assert result.errors[0].recipient["name"] == "李小龙"
    assert "Cannot encode" in result.errors[0].error
    assert [p.name for p in config.output_dir.iterdir()] == ["Certificate_ada.pdf"]


def test_uncreatable_output_directory_is_fatal(write_csv, make_config, tmp_path, log):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    config = make_config(write_csv([["name"], ["Ada"]]), output_dir=blocker / "certs")

    with pytest.raises(OutputDirectoryError):
        run_batch(config, log)


def test_main_exits_non_zero_when_output_directory_fails(write_csv, make_config, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    config = make_config(write_csv([["name"], ["Ada"]]), output_dir=blocker / "certs")

    assert main(_cli_args(config), env={}) == 1
    assert "[ERROR] Certificate generation failed: Cannot create output directory" in (
        config.logging.log_file_path.read_text()
    )


def test_main_rejects_invalid_styles_file(write_csv, make_config, tmp_path, capsys):
    styles = tmp_path / "styles.json"
    styles.write_text('{"name": {"x": null}}')
    config = make_config(write_csv([["name"], ["Ada"]]))

    assert main(_cli_args(config) + ["--styles", str(styles)], env={}) == 2
    assert "name.x" in capsys.readouterr().err
    assert not config.output_dir.exists()


def test_main_reports_unwritable_log_file(write_csv, make_config, tmp_path, capsys):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    config = make_config(write_csv([["name"], ["Ada"]]))
    args = _cli_args(config)
    args[args.index("--log-file") + 1] = str(blocker / "run.log")

    assert main(args, env={}) == 2
    assert "Cannot open log file" in capsys.readouterr().err
    assert not config.output_dir.exists()
