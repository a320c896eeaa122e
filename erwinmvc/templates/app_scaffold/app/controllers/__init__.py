"""Controllers. Each *Controller module exports convention handlers."""
