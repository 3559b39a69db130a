"""
General-purpose helpers not related to the client itself
(neither to the endpoints nor to the dispatching nor to the watching),
which are used to prepare and control the runtime environment.

As a rule of thumb, helpers MUST be abstracted from the client
to such an extent that they could be extracted as reusable libraries.
"""
