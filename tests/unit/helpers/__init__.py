from .asynchronous import async_test
from .timeout import TimeLimitedTestCase
