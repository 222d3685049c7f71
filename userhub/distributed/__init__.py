"""
Multi-process dispatch components.

Components:
- Coordinator: public listener that forwards requests to workers
- WorkerManager: spawns and supervises worker processes
- Worker: process owning one user store
- MessageChannel: correlated request/response messaging with timeouts
- LoadBalancer: worker selection policies
"""
