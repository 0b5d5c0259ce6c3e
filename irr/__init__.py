"""Infrastructure Readiness Reconciler (IRR).

Keeps a small docker compose stack of backing services (a database and a
message broker) in a known-good state:
 - status: observe which required services run and whether they are healthy
 - deploy: skip when healthy, otherwise tear down, bring up and wait for readiness
 - destroy: take the stack down

The decision logic lives in `irr.reconciler`; docker, health probes and the
compose driver are collaborators that can be swapped out in tests.
"""
