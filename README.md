# kindprov

Building blocks for clusters whose "nodes" are containers. The package drives
the `docker` command-line tool to manage the cluster network, pull node images,
list and delete node containers, run commands inside nodes, build
`docker run` arguments and report what the runtime supports. For `podman` it
offers nodes, network handling and image handling.

## Installing

```
pip install .
```

For the tests:

```
pip install '.[test]'
pytest
```

## Docker provider

`kindprov.docker_provider.DockerProvider`:

```python
from kindprov.docker_provider import DockerProvider

provider = DockerProvider()
for cluster in provider.list_clusters():   # sorted, unique
    nodes = provider.list_nodes(cluster)
    for node in nodes:
        print(node, node.role(), node.ip())  # ip() -> (ipv4, ipv6)

print(provider.info())          # ProviderInfo, cached after the first call
provider.delete_nodes(nodes)    # docker rm -f -v
```

Nodes are found through the container label `io.x-k8s.kind.cluster`; their
role is read from `io.x-k8s.kind.role`. Failures raise `RuntimeError` with the
underlying `kindprov.base.RunError` as its cause.

`kindprov.docker_util` holds the daemon probes: `is_available()`,
`userns_remap()`, `mount_dev_mapper()`, `mount_fuse()`, `info()`, and
`parse_info(raw)`, which builds a `kindprov.base.ProviderInfo` from
`docker info --format '{{json .}}'` output.

## Running commands

`kindprov.base.command(name, *args)` returns a `Cmd`; `output(cmd)` returns
its stdout as bytes and `output_lines(cmd)` as a list of lines. Inside a node,
use `node.command(...)`, which runs through `docker exec --privileged`
(`kindprov.docker_node.NodeCmd`) or `podman exec --privileged`
(`kindprov.podman_node.PodmanNodeCmd`):

```python
import io

out = io.StringIO()
node.command("cat", "/etc/os-release").set_stdout(out).run()
print(out.getvalue())
```

`set_env`, `set_stdin`, `set_stdout` and `set_stderr` return the command, so
calls chain; `build_args()` shows the arguments that will be passed. A failing
command raises `kindprov.base.RunError`, which carries the command line, its
combined output, its stdout and its exit status. `node.serial_logs(writer)`
writes the container's logs.

## Networks

`kindprov.docker_network.ensure_network(name)` and
`kindprov.podman_network.ensure_network(name)` create a bridge network if none
exists. Each network gets an IPv6 ULA `/64` derived from its name; on a subnet
clash up to four further subnets are probed, and hosts without IPv6 fall back
to an IPv4-only network. The Docker variant also copies the MTU of the default
bridge and removes duplicate networks of the same name, keeping the one with
the most attached containers (ties broken by ID).

```python
from kindprov.docker_network import generate_ula_subnet_from_name

generate_ula_subnet_from_name("kind", 0)   # 'fc00:f853:ccd:e793::/64'
```

## Images

`sanitize_image` in `kindprov.docker_images` and `kindprov.podman_images`
returns a readable name and a pullable reference; the Podman variant fully
qualifies short names with `docker.io/` and `library/`.
`pull_if_not_present(image, retries)` pulls only when the image is missing and
`pull(image, retries)` retries with a pause of 1, 2, 3 … seconds.

## Container arguments

`kindprov.docker_provision` turns `Mount` and `PortMapping` values into
`--volume=` and `--publish=` arguments with `generate_mount_bindings` and
`generate_port_mappings`; a host port of 0 is replaced by a free local port
and an empty listen address defaults by `ClusterIPFamily`. `get_subnets` reads
a docker network's subnets and `create_container` runs `docker run --name`.

## What is not here

- There is no Podman provider class: listing, deleting and describing Podman
  nodes, Podman version checks and Podman `run` arguments are not provided.
- Neither runtime gets a full cluster provisioning step, an API server
  endpoint lookup or log collection; the pieces above must be combined by the
  caller.
- There is no command-line program.