# civicfix/assignment.py
"""Worker selection and issue assignment.

Auto-assignment is load based: every call re-sorts the free, tag-matching
workers by how many jobs they have been auto-assigned so far (fewest first),
then by rating (best first). No rotation pointer is stored.
"""
import logging

from .errors import NotFoundError

logger = logging.getLogger(__name__)


def _normalized(tags):
    return {tag.strip().lower() for tag in tags or [] if tag and tag.strip()}


def search_tags_for(issue):
    return [tag for tag in [issue.category] if tag]


def matches_tags(worker, search_tags):
    wanted = _normalized(search_tags)
    if not wanted:
        return True
    return bool(wanted & _normalized(worker.tags))


def rank_candidates(workers, search_tags, busy_user_ids):
    """Orders the workers eligible for auto-assignment, best pick first.

    Eligible means available, tag-matching and holding no active issue.
    """
    eligible = [
        w for w in workers
        if w.status == 'available'
        and w.user_id not in busy_user_ids
        and matches_tags(w, search_tags)
    ]
    eligible.sort(key=lambda w: (w.total_jobs or 0, -(w.rating or 0), w.id))
    return eligible


def _by_rating(workers):
    return sorted(workers, key=lambda w: (w.rating is None, -(w.rating or 0), w.id))


def assign(repos, worker_id, issue_id):
    """Assigns an issue to a chosen worker. Does not count towards total_jobs."""
    with repos.transaction():
        worker = repos.workers.get(worker_id)
        if not worker:
            raise NotFoundError('Worker not found')
        issue = repos.issues.get(issue_id)
        if not issue:
            raise NotFoundError('Issue not found')

        issue.assigned_to = worker.user_id
        issue.status = 'assigned'
        if worker.status == 'available':
            worker.status = 'busy'

    logger.info("Issue #%s manually assigned to worker %s", issue.id, worker.id)
    return issue


def auto_assign(repos, issue_id):
    """Picks a worker for the issue and assigns it. Returns (issue, worker)."""
    with repos.transaction():
        issue = repos.issues.get(issue_id)
        if not issue:
            raise NotFoundError('Issue not found')

        search_tags = search_tags_for(issue)
        available = repos.workers.available(lock=True)
        busy = repos.issues.busy_assignee_ids(w.user_id for w in available)
        candidates = rank_candidates(available, search_tags, busy)
        for worker in candidates:
            logger.debug("Candidate worker %s: jobs=%s rating=%s", worker.id, worker.total_jobs, worker.rating)
        if not candidates:
            logger.info("No available workers for issue #%s (tags %s)", issue.id, search_tags)
            raise NotFoundError('No available workers found')

        selected = candidates[0]
        issue.assigned_to = selected.user_id
        issue.status = 'assigned'
        selected.total_jobs = (selected.total_jobs or 0) + 1
        selected.status = 'busy'

    logger.info("Issue #%s auto-assigned to worker %s (%s jobs)", issue.id, selected.id, selected.total_jobs)
    return issue, selected


def workers_for_issue(repos, issue_id):
    """Workers that could take the issue: tag match or currently available."""
    issue = repos.issues.get(issue_id)
    if not issue:
        raise NotFoundError('Issue not found')
    search_tags = search_tags_for(issue)
    matched = {w.id: w for w in repos.workers.with_any_tag(search_tags)}
    for worker in repos.workers.available():
        matched.setdefault(worker.id, worker)
    return issue, search_tags, _by_rating(matched.values())


def free_workers(repos):
    """Available workers without any active issue, best rated first."""
    available = repos.workers.available()
    busy = repos.issues.busy_assignee_ids(w.user_id for w in available)
    return _by_rating(w for w in available if w.user_id not in busy)
