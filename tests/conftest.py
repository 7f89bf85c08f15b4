import pytest


class FakeKeyboard:
    """Stands in for the system is_key_down(code) function."""

    def __init__(self):
        self.down = set()

    def __call__(self, code):
        return code in self.down

    def press(self, *codes):
        self.down.update(codes)

    def release(self, *codes):
        self.down.difference_update(codes)


@pytest.fixture
def keyboard_state():
    return FakeKeyboard()
