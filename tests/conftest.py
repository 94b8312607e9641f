import pytest

from fabricsim import JobClass, RecordingEventSink, Request


def make_request(src="8.8.8.8", service_time=1, job_class=JobClass.A, dst="1.1.1.1"):
    return Request(src, dst, service_time, job_class)


@pytest.fixture
def recorder():
    return RecordingEventSink()
