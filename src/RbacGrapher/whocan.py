"""Matching of "who can VERB RESOURCE [NAME]" queries against role rules."""

from dataclasses import dataclass

from RbacGrapher.model import Role, Rule

WILDCARD = "*"
ELLIPSIS = "..."


@dataclass(frozen=True, slots=True)
class WhoCan:
    verb: str = ""
    resource_kind: str = ""
    resource_name: str = ""
    show_matched_only: bool = False

    def matches(self, rule: Rule) -> bool:
        # apiGroups are not compared: a "get pods" query matches a rule for
        # pods in any API group.
        return (
            (WILDCARD in rule.verbs or self.verb in rule.verbs)
            and (WILDCARD in rule.resources or self.resource_kind in rule.resources)
            and (
                not self.resource_name
                or not rule.resourceNames
                or self.resource_name in rule.resourceNames
            )
        )

    def matches_any_rule_in(self, role: Role) -> bool:
        return any(self.matches(rule) for rule in role.rules)


def rule_to_human_readable(rule: Rule) -> str:
    """Return e.g. ``get,list pods "web" (apps)``."""

    result = ",".join(rule.verbs)
    if rule.resources:
        result += " " + ",".join(rule.resources)
    if rule.resourceNames:
        result += ' "' + ",".join(rule.resourceNames) + '"'
    if rule.nonResourceURLs:
        result += " " + ",".join(rule.nonResourceURLs)
    if len(rule.apiGroups) > 1 or (len(rule.apiGroups) == 1 and rule.apiGroups[0] != ""):
        result += " (" + ",".join(rule.apiGroups) + ")"
    return result
