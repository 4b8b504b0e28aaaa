import os
import sys
from pathlib import Path
from typing import Iterator

import pytest

# Ensure project root is on sys.path so that 'tests.fixtures' and 'ecs_deploy' import without installation
_repo_root_str = str(Path(__file__).resolve().parents[1])
if _repo_root_str not in sys.path:
    sys.path.insert(0, _repo_root_str)


@pytest.fixture(autouse=True)
def aws_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Ensure default AWS region is set for moto/boto3 clients and clear cross-test env leaks."""
    monkeypatch.setenv("AWS_REGION", os.environ.get("AWS_REGION", "us-east-1"))
    monkeypatch.setenv("AWS_DEFAULT_REGION", os.environ.get("AWS_DEFAULT_REGION", "us-east-1"))
    # Provide dummy credentials so botocore signing doesn't fail under moto
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", os.environ.get("AWS_ACCESS_KEY_ID", "testing"))
    monkeypatch.setenv(
        "AWS_SECRET_ACCESS_KEY",
        os.environ.get("AWS_SECRET_ACCESS_KEY", "testing"),
    )
    monkeypatch.setenv("AWS_SESSION_TOKEN", os.environ.get("AWS_SESSION_TOKEN", "testing"))

    # Stage selection must come from explicit arguments in tests
    monkeypatch.delenv("STAGE", raising=False)
    monkeypatch.delenv("APP_REVISION", raising=False)
    yield


@pytest.fixture
def docker_context(tmp_path: Path) -> Path:
    """Minimal Docker build context for image asset synthesis."""
    (tmp_path / "Dockerfile").write_text("FROM public.ecr.aws/docker/library/python:3.12-slim\n")
    return tmp_path


def pytest_configure(config):
    """Configure pytest with essential markers."""
    config.addinivalue_line("markers", "unit: unit test")
    config.addinivalue_line("markers", "infrastructure: CDK synthesis test")
    config.addinivalue_line("markers", "slow: slow running test")


def pytest_addoption(parser):
    """Add essential command line options."""
    parser.addoption("--runslow", action="store_true", default=False, help="run slow tests")


def pytest_collection_modifyitems(config, items):
    """Add markers based on file location."""
    rootdir = Path(config.rootdir)

    for item in items:
        rel_path = Path(item.fspath).relative_to(rootdir)
        if "unit" in rel_path.parts:
            item.add_marker(pytest.mark.unit)
        if "infrastructure" in rel_path.parts:
            item.add_marker(pytest.mark.infrastructure)


def pytest_runtest_setup(item):
    """Skip slow tests unless --runslow is given."""
    if "slow" in item.keywords and not item.config.getoption("--runslow"):
        pytest.skip("need --runslow option to run")
