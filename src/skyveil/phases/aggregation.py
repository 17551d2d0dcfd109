from collections import OrderedDict


def by_service(hit):
    return hit.service_id


def by_endpoint(hit):
    return hit.endpoint


class HitAggregator:
    """
    Collects hits after the probe batch has settled and groups them for writing.

    Groups come out in `group_order` first (catalog order), then any other group in the order it
    was first seen; hits keep insertion order within a group and repeat values are dropped.
    """

    def __init__(self, group_order=None, key=by_service):
        self.group_order = list(group_order or [])
        self.key = key
        self._groups = OrderedDict()
        self._seen = {}

    def add(self, hit):
        if hit is None:
            return False
        group = self.key(hit)
        seen = self._seen.setdefault(group, set())
        if hit.value in seen:
            return False
        seen.add(hit.value)
        self._groups.setdefault(group, []).append(hit)
        return True

    def extend(self, hits):
        return sum(1 for hit in hits if self.add(hit))

    def groups(self):
        ordered = OrderedDict()
        for group in self.group_order:
            if group in self._groups:
                ordered[group] = list(self._groups[group])
        for group, hits in self._groups.items():
            if group not in ordered:
                ordered[group] = list(hits)
        return ordered

    def all_hits(self):
        return [hit for hits in self.groups().values() for hit in hits]

    def __len__(self):
        return sum(len(hits) for hits in self._groups.values())

    def __bool__(self):
        return bool(self._groups)
