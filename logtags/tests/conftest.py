"""
Pytest configuration and shared fixtures for logtags tests
"""

import pytest
from pathlib import Path
from typing import List

from logtags.config import ExplorerSettings
from logtags.context.scripting import ScriptBridge, ScriptScope
from logtags.context.tagging import TagEngine
from logtags.services import PipelineEvaluator, Session

APACHE_LINES = [
    "[Sun Dec 04 04:47:44 2005] [notice] workerEnv.init() ok /etc/httpd/conf/workers2.properties",
    "[Sun Dec 04 04:47:44 2005] [error] mod_jk child workerEnv in error state 6",
    "[Sun Dec 04 04:51:08 2005] [notice] jk2_init() Found child 6725 in scoreboard slot 10",
    "[Sun Dec 04 05:15:09 2005] [error] [client 222.166.160.184] Directory index forbidden by rule: /var/www/html/",
    "[Sun Dec 04 05:51:14 2005] [notice] workerEnv.init() ok /etc/httpd/conf/workers2.properties",
    "[Sun Dec 04 06:01:52 2005] [error] mod_jk child workerEnv in error state 7",
    "[Sun Dec 04 06:02:03 2005] [notice] jk2_init() Found child 6736 in scoreboard slot 10",
    "[Sun Dec 04 06:12:01 2005] [warn] child process 6743 still did not exit, sending a SIGTERM",
]

LEVEL_PATTERN = r"\[(error|notice)\]"
HOUR_PATTERN = r"^\[\w+ \w+ \d+ (\d\d):"


@pytest.fixture(scope="session")
def apache_lines() -> List[str]:
    """The sample Apache error log, one string per line"""
    return list(APACHE_LINES)


@pytest.fixture(scope="session")
def test_data_dir(tmp_path_factory):
    """Create a temporary directory holding the sample logs"""
    data_dir = tmp_path_factory.mktemp("test_data")

    (data_dir / "apache.log").write_text("\n".join(APACHE_LINES) + "\n", encoding="utf-8")

    # 1000 numbered lines, enough for several read batches
    (data_dir / "numbers.log").write_text(
        "".join(f"line {i} value={i % 7}\n" for i in range(1000)), encoding="utf-8"
    )

    (data_dir / "empty.log").write_text("", encoding="utf-8")
    (data_dir / "crlf.log").write_bytes(b"first\r\nsecond\r\nthird")

    return data_dir


@pytest.fixture
def apache_log(test_data_dir) -> Path:
    return test_data_dir / "apache.log"


@pytest.fixture
def numbers_log(test_data_dir) -> Path:
    return test_data_dir / "numbers.log"


@pytest.fixture
def settings() -> ExplorerSettings:
    """Default settings with the script timeout disabled"""
    return ExplorerSettings(script_timeout=0.0)


@pytest.fixture
def engine() -> TagEngine:
    return TagEngine(ScriptBridge(), ScriptScope())


@pytest.fixture
def evaluator(engine, settings) -> PipelineEvaluator:
    return PipelineEvaluator(engine, settings)


@pytest.fixture
def session(settings, test_data_dir):
    """Session resolving relative paths against the sample data directory"""
    session = Session(settings, base_dir=test_data_dir)
    yield session
    session.close()
