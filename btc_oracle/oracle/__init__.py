"""Block-gap reconciliation, idempotent publication and proof serving.

Gap reconciler -> publisher -> (canonicalizer, merkle, tracker, ledger);
proof responder is an independent read path driven by chat messages.
"""
