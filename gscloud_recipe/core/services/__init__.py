"""Services — fetch, build and binary invocation."""
