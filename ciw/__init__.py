"""Compose Image Watcher (CIW).

Single-node daemon that keeps one compose service on the latest image:
 - listens to the docker event stream
 - when a container of the tracked image dies or restarts, runs
   `docker compose kill / pull / rm -f / up -d` for it
 - suppresses repeat restarts of the same container for 60 seconds

Restart outcomes are reported through logging only.
"""
