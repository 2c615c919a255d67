"""
GraphQL Query Definitions — Every Admin GraphQL document the aggregator sends.

Extraction (read):
  FILES_QUERY                     Files API, filtered to images, cursor paginated
  METAOBJECT_DEFINITIONS_QUERY    Metaobject types and their field types
  METAOBJECTS_QUERY               Instances of one metaobject type, with
                                  file_reference fields resolved to MediaImage

Replacement (write):
  STAGED_UPLOADS_CREATE_MUTATION  Step 1 of the staged upload protocol
  FILE_CREATE_MUTATION            Step 3: register the uploaded resource as a File
  FILE_QUERY                      Poll a freshly created file until its image URL exists
  METAOBJECT_UPDATE_MUTATION      Point a metaobject field at a new file

All connection queries take $first and an optional $after cursor so the
Paginator can drive them.
"""

FILES_QUERY = """
query getMediaFiles($first: Int!, $after: String) {
  files(first: $first, after: $after, query: "media_type:IMAGE") {
    edges {
      node {
        id
        alt
        createdAt
        fileStatus
        ... on MediaImage {
          image {
            url
            width
            height
          }
          mimeType
          originalSource {
            url
          }
        }
      }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
"""

METAOBJECT_DEFINITIONS_QUERY = """
query getMetaobjectDefinitions($first: Int!, $after: String) {
  metaobjectDefinitions(first: $first, after: $after) {
    edges {
      node {
        id
        type
        name
        fieldDefinitions {
          key
          type {
            name
          }
        }
      }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
"""

METAOBJECTS_QUERY = """
query getMetaobjectsOfType($type: String!, $first: Int!, $after: String) {
  metaobjects(type: $type, first: $first, after: $after) {
    edges {
      node {
        id
        type
        handle
        fields {
          key
          type
          value
          reference {
            ... on MediaImage {
              id
              alt
              image {
                url
                width
                height
              }
            }
          }
        }
      }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
"""

STAGED_UPLOADS_CREATE_MUTATION = """
mutation stagedUploadsCreate($input: [StagedUploadInput!]!) {
  stagedUploadsCreate(input: $input) {
    stagedUploads {
      resourceUrl
      url
      parameters {
        name
        value
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""

FILE_CREATE_MUTATION = """
mutation fileCreate($files: [FileCreateInput!]!) {
  fileCreate(files: $files) {
    files {
      id
      fileStatus
      ... on MediaImage {
        image {
          url
        }
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""

FILE_QUERY = """
query getFile($id: ID!) {
  node(id: $id) {
    id
    ... on MediaImage {
      fileStatus
      image {
        url
      }
    }
  }
}
"""

METAOBJECT_UPDATE_MUTATION = """
mutation metaobjectUpdate($id: ID!, $metaobject: MetaobjectUpdateInput!) {
  metaobjectUpdate(id: $id, metaobject: $metaobject) {
    metaobject {
      id
      handle
      fields {
        key
        value
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""
