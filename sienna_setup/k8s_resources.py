import os

import jinja2
import yaml

from sienna_setup import config


TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")


def get_access_bundle_templates():
    """
    Define the access objects in the order in which they have to be applied.
    """
    return {
        "service_account": "service_account.yaml",
        "cluster_role": "cluster_role.yaml",
        "cluster_role_binding": "cluster_role_binding.yaml",
    }


def create_template_values(namespace):
    """
    Create a single non-nested dictionary with all the variables
    needed by the manifest templates.
    """
    return {
        "cluster_role_binding_name": config.CLUSTER_ROLE_BINDING_NAME,
        "cluster_role_name": config.CLUSTER_ROLE_NAME,
        "namespace": namespace,
        "service_account_name": config.SERVICE_ACCOUNT_NAME,
        "service_account_name_annotation": config.SERVICE_ACCOUNT_NAME_ANNOTATION,
        "token_secret_name": config.TOKEN_SECRET_NAME,
        "token_type": config.SERVICE_ACCOUNT_TOKEN_TYPE,
    }


def render_template(template_file, template_values):
    """
    Render a template given the template values and return
    a python dictionary specifying the resource.
    """
    tmpl_loader = jinja2.FileSystemLoader(TEMPLATE_DIR)
    tmpl_env = jinja2.Environment(loader=tmpl_loader, undefined=jinja2.StrictUndefined)
    yaml_string = tmpl_env.get_template(template_file).render(**template_values)
    return yaml.safe_load(yaml_string)


def get_namespace_spec(namespace):
    return render_template("namespace.yaml", create_template_values(namespace))


def get_token_secret_spec(namespace):
    return render_template("token_secret.yaml", create_template_values(namespace))


def get_access_bundle_specs(namespace):
    """
    Create the resource specifications (as nested python dictionaries) of
    the service account, the cluster role and the binding between them.
    The returned dictionary preserves the order in which they are applied.
    """
    template_values = create_template_values(namespace)
    return {
        key: render_template(tpl, template_values)
        for key, tpl in get_access_bundle_templates().items()
    }


def dump_access_bundle(namespace):
    """Serialize the namespace and the access bundle as a multi-document YAML string."""
    specs = [get_namespace_spec(namespace), *get_access_bundle_specs(namespace).values()]
    return yaml.safe_dump_all(specs, sort_keys=False)
