import argparse
from argparse import RawTextHelpFormatter
import sys

from RbacGrapher.builder import build_graph
from RbacGrapher.loader import RbacDecodeError, load_rbac
from RbacGrapher.renderers import render_dot
from RbacGrapher.selection import ALL_NAMESPACES, KIND_RULE, QueryConfig, normalize_kind
from RbacGrapher.whocan import WhoCan

EXIT_INPUT_ERROR = 1
EXIT_USAGE = 4


def build_parser():
    parser = argparse.ArgumentParser(description="""Exemple:
        kubectl get sa,roles,rolebindings,clusterroles,clusterrolebindings --all-namespaces -o json | RbacGrapher | dot -Tpng > rbac.png
        RbacGrapher -f rbac.json -n team-a,team-b
        RbacGrapher -f rbac.yaml --format yaml sa alice bob
        RbacGrapher -f rbac.json who-can get secrets db-password
        RbacGrapher -f rbac.json --neo4j -u neo4j -p rootroot -r""",
        formatter_class=RawTextHelpFormatter,)

    parser.add_argument('selection', nargs="*", help='KIND [NAME ...] or who-can VERB RESOURCE [NAME]. Possible kinds: serviceaccount (sa), rolebinding (rb), clusterrolebinding (crb), role (r), clusterrole (cr), user, group')
    parser.add_argument('-f', '--file', default="", help='input file (otherwise stdin is used).')
    parser.add_argument('--format', dest="inputFormat", choices=["json", "yaml"], default="json", help='input format.')
    parser.add_argument('-n', '--namespaces', default="", help='namespace to render (also supports multiple, comma-delimited namespaces).')
    parser.add_argument('--ignore-prefixes', dest="ignoredPrefixes", default="system:", help="comma-delimited list of (Cluster)Role(Binding) prefixes to ignore ('none' to not ignore anything).")
    parser.add_argument('--show-rules', dest="showRules", action=argparse.BooleanOptionalAction, default=True, help='render access rules (e.g. "get pods").')
    parser.add_argument('--show-legend', dest="showLegend", action=argparse.BooleanOptionalAction, default=True, help='render the legend.')
    parser.add_argument('--show-matched-rules-only', dest="showMatchedOnly", action="store_true", help='with who-can, collapse the rules that did not match.')
    parser.add_argument('-o', '--output', default="", help='output file (otherwise stdout is used).')
    parser.add_argument('-T', '--outputFormat', default="", help='render with graphviz to this format (png, svg, pdf, ...) instead of writing DOT.')
    parser.add_argument('--neo4j', action="store_true", help='merge the graph into neo4j instead of writing DOT.')
    parser.add_argument('--neo4j-url', dest="neo4jUrl", default="bolt://localhost:7687", help='neo4j url.')
    parser.add_argument('-u', '--userNeo4j', default="neo4j", help='neo4j database user.')
    parser.add_argument('-p', '--passwordNeo4j', default="rootroot", help='neo4j database password.')
    parser.add_argument('-d', '--databaseName', default="neo4j", help='Database Name.')
    parser.add_argument('-r', '--resetDB', action="store_true", help='reset the neo4j db.')
    parser.add_argument('--debug', action="store_true", help='raise errors instead of printing them.')
    return parser


def build_config(args):
    """Translate parsed arguments into a QueryConfig.

    Raises ValueError on a who-can query without VERB and RESOURCE.
    """

    resource_kind = None
    resource_names = frozenset()
    who_can = WhoCan(show_matched_only=args.showMatchedOnly)

    if args.selection:
        if args.selection[0] == "who-can":
            if len(args.selection) < 3:
                raise ValueError("Usage: RbacGrapher who-can VERB RESOURCE [NAME]")
            resource_kind = KIND_RULE
            who_can = WhoCan(
                verb=args.selection[1],
                resource_kind=args.selection[2],
                resource_name=args.selection[3] if len(args.selection) > 3 else "",
                show_matched_only=args.showMatchedOnly,
            )
        else:
            resource_kind = normalize_kind(args.selection[0])
            resource_names = frozenset(args.selection[1:])

    namespaces = frozenset(args.namespaces.split(",")) if args.namespaces else ALL_NAMESPACES

    if args.ignoredPrefixes == "none":
        ignored_prefixes = frozenset()
    else:
        ignored_prefixes = frozenset(prefix for prefix in args.ignoredPrefixes.split(",") if prefix)

    return QueryConfig(
        namespaces=namespaces,
        ignored_prefixes=ignored_prefixes,
        resource_kind=resource_kind,
        resource_names=resource_names,
        show_rules=args.showRules,
        show_legend=args.showLegend,
        who_can=who_can,
    )


def read_input(path):
    if path:
        with open(path, encoding="utf-8") as f:
            return f.read()
    return sys.stdin.read()


def export_neo4j(graph, args):
    from py2neo import Graph

    from RbacGrapher.neo4j_export import export_to_neo4j

    print("#### Init neo4j ####")
    neo4j_graph = Graph(args.neo4jUrl, name=args.databaseName, user=args.userNeo4j, password=args.passwordNeo4j)
    if args.resetDB:
        if input("are you sure your want to reset the db? (y/n)") != "y":
            sys.exit(0)
        neo4j_graph.delete_all()
    export_to_neo4j(graph, neo4j_graph)


def write_output(graph, args):
    dot = render_dot(graph)

    if args.outputFormat:
        data = dot.pipe(format=args.outputFormat)
        if args.output:
            with open(args.output, "wb") as f:
                f.write(data)
        else:
            sys.stdout.buffer.write(data)
        return

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(dot.source)
    else:
        print(dot.source)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as e:
        print(e, file=sys.stderr)
        sys.exit(EXIT_USAGE)

    try:
        text = read_input(args.file)
    except OSError as e:
        if args.debug:
            raise
        print(f"[-] Can't open file {args.file}: {e}", file=sys.stderr)
        sys.exit(EXIT_INPUT_ERROR)

    try:
        permissions = load_rbac(text, config, args.inputFormat)
    except RbacDecodeError as e:
        if args.debug:
            raise
        print(f"[-] Can't parse RBAC resources: {e}", file=sys.stderr)
        sys.exit(EXIT_INPUT_ERROR)

    graph = build_graph(permissions, config)

    if args.neo4j:
        export_neo4j(graph, args)
    else:
        write_output(graph, args)


if __name__ == '__main__':
    main()
