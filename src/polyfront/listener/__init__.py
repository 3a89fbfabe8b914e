"""Signal sources feeding the dispatcher."""
